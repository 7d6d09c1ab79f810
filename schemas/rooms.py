from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def canonical_room_code(value: str) -> str:
    return value.strip().upper()


class WireModel(BaseModel):
    """Base for everything that goes out over the socket: camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# Room state

class VideoState(WireModel):
    playing: bool = False
    time: float = 0.0
    last_update: Optional[datetime] = None

class Member(WireModel):
    connection_id: str = Field(alias="id")
    username: str
    color: str = ""
    joined_at: datetime

class Room(WireModel):
    code: str
    current_video: Optional[str] = None
    video_state: VideoState = Field(default_factory=VideoState)
    users: List[Member] = Field(default_factory=list)
    created_at: datetime


# Inbound socket payloads

class RoomPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room: str

    @field_validator("room")
    @classmethod
    def normalize_room(cls, value: str) -> str:
        code = canonical_room_code(value)
        if not code:
            raise ValueError("Room code is required")
        return code

class JoinRoomPayload(RoomPayload):
    username: Optional[str] = None
    color: Optional[str] = None

class SendMessagePayload(RoomPayload):
    username: Optional[str] = None
    text: Optional[str] = None
    color: Optional[str] = None

class ChangeVideoPayload(RoomPayload):
    video_id: Optional[str] = Field(None, alias="videoId")

class SyncActionPayload(RoomPayload):
    type: Literal["play", "pause", "seek"]
    time: float


# Outbound socket payloads

class ChatMessage(WireModel):
    username: str
    text: str
    color: str = ""
    timestamp: datetime
    system: bool = False

class SyncBroadcast(WireModel):
    type: str
    time: float
    server_timestamp: datetime

class ErrorPayload(WireModel):
    message: str


# HTTP responses

class HealthResponse(WireModel):
    status: str
    rooms: int
    connections: int

class MemoryStats(WireModel):
    peak_rss_kb: Optional[int] = None

class StatusResponse(HealthResponse):
    uptime: float
    memory: MemoryStats

class RoomDetailsResponse(WireModel):
    code: str
    users: int
    has_video: bool
    created: datetime
