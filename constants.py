import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
SOCKETIO_PATH = os.getenv("SOCKETIO_PATH", "socket.io")

REAPER_INTERVAL_SECONDS = int(os.getenv("REAPER_INTERVAL_SECONDS", 3600))  # 1 hour
ROOM_RETENTION_SECONDS = int(os.getenv("ROOM_RETENTION_SECONDS", 86400))  # 24 hours
STATUS_LOG_INTERVAL_SECONDS = int(os.getenv("STATUS_LOG_INTERVAL_SECONDS", 300))

MAX_USERNAME_LENGTH = 15
MAX_MESSAGE_LENGTH = 500
VIDEO_ID_LENGTH = 11

DEFAULT_USERNAME = "Guest"
SYSTEM_USERNAME = "System"
SYSTEM_COLOR = "#888"
