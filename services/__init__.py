"""
服務層

這個 package 包含純計算邏輯與外部儲存，不負責狀態轉換：
- NamingService：房間代碼、session token、玩家名稱
- TallyService：計票與勝負判定
- PromptCatalog：題庫與預設題目
- BlobStore：畫作檔案的原子寫入
"""
