"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理房間狀態轉換（LOBBY / DRAWING / VOTING / RESULTS）
- Manager：房間、玩家、回合、畫作、投票
- Round Progress：自動轉換的判斷
- Locks：房間層級的並發控制
- Events / Broadcaster：commit 之後的即時廣播
- Sweeper：結束逾時的回合
"""
