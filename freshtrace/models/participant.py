from datetime import datetime
from sqlmodel import SQLModel, Field

from freshtrace.db.schema import ParticipantRole


class ParticipantCreate(SQLModel):
    """
    Payload for registering a participant.
    """
    address: str = Field(min_length=1, max_length=128,
                         description="Unique identity handle")
    name: str = Field(min_length=1, max_length=150,
                      description="Display name")
    contact_info: str = Field(default="", max_length=255)
    role: ParticipantRole


class ParticipantRead(SQLModel):
    address: str
    name: str
    contact_info: str
    role: ParticipantRole
    is_active: bool
    registered_at: datetime
