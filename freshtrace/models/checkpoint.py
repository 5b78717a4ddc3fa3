from datetime import datetime
from sqlmodel import SQLModel, Field

from freshtrace.db.schema import Stage, ParticipantRole


class CheckpointCreate(SQLModel):
    stage: Stage
    location: str = Field(default="", max_length=255)
    temperature: float = 0
    notes: str = Field(default="", max_length=1000)
    evidence_hash: str = Field(default="", max_length=255)


class CheckpointRead(SQLModel):
    position: int
    stage: Stage
    location: str
    timestamp: datetime
    verifier_address: str
    verifier_name: str
    verifier_role: ParticipantRole
    temperature: float
    notes: str
    evidence_hash: str
