from fastapi import APIRouter, HTTPException, Request

from backend import room_store
from logging_config import get_logger
from schemas.rooms import RoomDetailsResponse, canonical_room_code

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/room", tags=["rooms"])


@rooms_router.get("/{code}", response_model=RoomDetailsResponse)
async def get_room_details(code: str, request: Request):
    """
    Read-only summary of a live room.

    Returns:
    - code: canonical (uppercase) room code
    - users: number of members currently in the room
    - hasVideo: whether a video has been set
    - created: room creation timestamp
    """
    client_host = request.client.host if request.client else 'unknown'
    room_code = canonical_room_code(code)
    logger.info(f"Room details request for {room_code} from {client_host}")

    room = room_store.get(room_code)
    if not room:
        logger.info(f"Room details failed: Room {room_code} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomDetailsResponse(
        code=room.code,
        users=len(room.users),
        has_video=room.current_video is not None,
        created=room.created_at,
    )
