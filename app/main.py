import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.routers import ws
from app.services.websocket.manager import get_connection_manager

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Chaos Ultimate Tic-Tac-Toe relay")
    logger.debug("Debug mode: %s", settings.DEBUG)

    connection_manager = get_connection_manager()
    await connection_manager.start_cleanup_task()
    logger.info("WebSocket connection manager initialized")

    yield

    logger.info("Shutting down Chaos Ultimate Tic-Tac-Toe relay")
    await connection_manager.stop_cleanup_task()
    await connection_manager.close_all()
    logger.info("WebSocket cleanup complete")


app = FastAPI(
    title="Chaos Ultimate Tic-Tac-Toe Relay",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.debug("CORS configured with origins: %s", settings.CORS_ORIGINS)

app.include_router(ws.router, prefix="/api/v1")
logger.debug("Routers registered: /api/v1/ws")


@app.get("/")
def root():
    return {"message": "Chaos Ultimate Tic-Tac-Toe Relay"}


@app.get("/health")
def health():
    manager = get_connection_manager()
    return {
        "status": "healthy",
        "connections": manager.connection_count,
        "rooms": manager.rooms.room_count,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
