from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from pathlib import Path
import asyncio
import logging

from database import Base, engine, SessionLocal, get_settings
from api import rooms, players, drawings, votes, websocket
from core.sweeper import run_sweeper
from services.prompt_catalog import seed_prompt_pairs

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表、寫入預設題目、啟動 Expiry Sweeper
    Base.metadata.create_all(bind=engine)

    if settings.seed_prompts:
        db = SessionLocal()
        try:
            seed_prompt_pairs(db)
        finally:
            db.close()

    sweeper = asyncio.create_task(run_sweeper(SessionLocal, settings.sweep_interval_seconds))
    yield

    # Shutdown: 停止 sweeper
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    logger.info("Expiry sweeper stopped")


app = FastAPI(
    title="Imposter Draw API",
    description="Backend API for the multiplayer drawing game where one player gets a different prompt",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rooms.router)
app.include_router(players.router)
app.include_router(players.avatar_router)
app.include_router(drawings.router)
app.include_router(votes.router)
app.include_router(websocket.router)

# 上傳的畫作由 blob store 寫入 upload_dir，對外用 /static/<path> 讀取
Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount(settings.static_url_prefix, StaticFiles(directory=settings.upload_dir), name="static")


@app.get("/")
def root():
    return {"message": "Imposter Draw API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
