import asyncio
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import room_store
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, SOCKETIO_PATH
from logging_config import get_logger, setup_logging
from reaper import Reaper, log_status_periodically
from realtime import sio
from routers.rooms import rooms_router
from routers.status import status_router
from sessions import session_registry

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

reaper = Reaper(room_store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the reaper and status log, cancel them on shutdown."""
    reaper.start()
    status_task = asyncio.create_task(log_status_periodically(room_store, session_registry))
    logger.info("Background tasks started: reaper, status log")
    yield

    status_task.cancel()
    try:
        await status_task
    except asyncio.CancelledError:
        pass
    await reaper.stop()
    logger.info(f"Shutting down with {room_store.list_active()} rooms in memory")


api = FastAPI(title="Watch Party Relay", lifespan=lifespan)

# Configure CORS
api.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ORIGINS != ["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

api.include_router(status_router)
api.include_router(rooms_router)

# Socket.IO sits in front and hands everything outside its path to FastAPI,
# lifespan events included.
app = socketio.ASGIApp(sio, other_asgi_app=api, socketio_path=SOCKETIO_PATH)

logger.info(f"Watch party relay initialized (Socket.IO path: /{SOCKETIO_PATH})")
