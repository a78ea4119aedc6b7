# schemas.py — Typed entities exposed to consumers, plus mutation inputs
import re
from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from errors import message_for
from models import FileKind, TeamRole


# ── Entities ─────────────────────────────────────────────────

class Entity(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class User(Entity):
    id: str
    name: str
    email: str


class TeamMember(Entity):
    user_id: str
    role: TeamRole


class Team(Entity):
    id: str
    name: str
    owner_id: str
    members: Tuple[TeamMember, ...] = ()

    def member(self, user_id: str) -> Optional[TeamMember]:
        for m in self.members:
            if m.user_id == user_id:
                return m
        return None


class Meeting(Entity):
    id: str
    team_id: str
    title: str
    meet_link: str
    date_time: str
    created_by: str


class Document(Entity):
    id: str
    team_id: str
    name: str
    content: Optional[str] = None  # withheld while password protected
    password_protected: bool = False
    created_by: str


class FileLockerItem(Entity):
    id: str
    team_id: str
    name: str
    type: FileKind
    url: str
    created_by: str


class ChatMessage(Entity):
    id: str
    team_id: str
    channel_id: str
    sender_id: str
    content: str
    timestamp: str


# ── Mutation inputs ──────────────────────────────────────────

# bcrypt rejects input longer than 72 bytes
PASSWORD_MAX_BYTES = 72


def _check_password_length(v: str) -> str:
    if len(v.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return v


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^\s@]+@[^\s@]+$")
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_length(v)


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Team name must not be blank")
        return v


def _check_instant(v: str) -> str:
    try:
        datetime.fromisoformat(v.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Not an ISO-8601 date/time: {v!r}")
    return v


class MeetingCreate(BaseModel):
    team_id: str
    title: str = Field(..., min_length=1, max_length=200)
    meet_link: str = Field(..., min_length=1)
    date_time: str
    created_by: str

    @field_validator("date_time")
    @classmethod
    def validate_date_time(cls, v: str) -> str:
        return _check_instant(v)


class DocumentCreate(BaseModel):
    team_id: str
    name: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    password_protected: bool = False
    password: Optional[str] = None
    created_by: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_password_length(v)

    @model_validator(mode="after")
    def password_iff_protected(self) -> "DocumentCreate":
        if self.password_protected and not self.password:
            raise ValueError("A password is required for a protected document")
        if not self.password_protected:
            self.password = None
        return self


class FileCreate(BaseModel):
    team_id: str
    name: str = Field(..., min_length=1, max_length=255)
    type: FileKind = FileKind.OTHER
    url: str = Field(..., min_length=1)
    created_by: str


class MessageCreate(BaseModel):
    team_id: str
    channel_id: str = Field(..., min_length=1)
    sender_id: str
    content: str
    timestamp: str

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content must not be blank")
        return v

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        return _check_instant(v)


# ── Results ──────────────────────────────────────────────────

class OperationResult(BaseModel):
    """Outcome of a mutation: success flag plus a human-readable reason"""

    success: bool
    message: str
    code: Optional[str] = None
    id: Optional[str] = None
    persisted: bool = True

    @classmethod
    def ok(cls, message: str, id: Optional[str] = None, persisted: bool = True) -> "OperationResult":
        return cls(success=True, message=message, id=id, persisted=persisted)

    @classmethod
    def fail(cls, code: str, message: Optional[str] = None) -> "OperationResult":
        return cls(success=False, message=message or message_for(code), code=code, persisted=False)

    @classmethod
    def invalid(cls, error: ValidationError) -> "OperationResult":
        errors = error.errors()
        return cls.fail("CX-INPUT-001", errors[0]["msg"] if errors else None)


class DashboardSummary(Entity):
    teams: Tuple[Team, ...] = ()
    upcoming_meetings: Tuple[Meeting, ...] = ()
    recent_documents: Tuple[Document, ...] = ()
    total_documents: int = 0


# ── Helpers ──────────────────────────────────────────────────

FILE_KIND_RULES = [
    (re.compile(r"\.(jpe?g|png|gif|svg)$", re.IGNORECASE), FileKind.IMAGE),
    (re.compile(r"\.pdf$", re.IGNORECASE), FileKind.PDF),
    (re.compile(r"\.(mp4|mov|avi)$", re.IGNORECASE), FileKind.VIDEO),
]


def guess_file_kind(name: str) -> FileKind:
    """Locker item type for an uploaded file, from its extension"""
    for pattern, kind in FILE_KIND_RULES:
        if pattern.search(name):
            return kind
    return FileKind.OTHER
