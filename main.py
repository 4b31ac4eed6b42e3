from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from config import Settings, get_settings
from database import Base, SessionLocal, engine
from core.persistence import PersistenceGateway, SqlPersistenceGateway, load_game_state
from core.round_engine import RoundEngine
from core.scheduler import RevealScheduler
from api import accounts, rounds

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    persistence: Optional[PersistenceGateway] = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 讀取遊戲狀態，啟動 engine 與自動開獎
        gateway = persistence
        if gateway is None:
            Base.metadata.create_all(bind=engine)
            gateway = SqlPersistenceGateway(SessionLocal)

        state = load_game_state(gateway)
        round_engine = RoundEngine(state, gateway, settings)
        await round_engine.start()
        scheduler = RevealScheduler(round_engine, settings.round_interval_seconds)
        scheduler.start()

        app.state.settings = settings
        app.state.engine = round_engine
        logger.info(f"Numbers game ready, round {round_engine.current_round().round_id} open")
        yield
        # Shutdown: 先停計時器，再讓 engine 處理完排隊中的請求並寫最後一次 snapshot
        scheduler.stop()
        await round_engine.stop()

    app = FastAPI(
        title="Numbers Game API",
        description="Timed numbers-betting rounds with liability-aware reveal",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(accounts.router)
    app.include_router(rounds.router)

    @app.get("/")
    def root():
        return {"message": "Numbers Game API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
