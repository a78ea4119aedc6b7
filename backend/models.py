# models.py — Relational schema for the CollaboraX workspace store
# - Prefixed uuid4 string primary keys
# - 3-tier team roles (owner, sub-admin, member)
# - Composite key for team membership
# - Foreign keys declared for documentation; the engine does not enforce them

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import Column, String, Integer, Text, ForeignKey, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()

PUBLIC_CHANNEL = "public"


def utcnow():
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


# ============================================================
# ENUMS
# ============================================================

class TeamRole(str, PyEnum):
    OWNER = "owner"
    SUB_ADMIN = "sub-admin"
    MEMBER = "member"


class FileKind(str, PyEnum):
    PDF = "pdf"
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"
    OTHER = "other"


# ============================================================
# USERS & TEAMS
# ============================================================

class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    password = Column(String, nullable=False)  # bcrypt hash


class TeamRow(Base):
    __tablename__ = "teams"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False)


class TeamMemberRow(Base):
    __tablename__ = "team_members"

    team_id = Column(String, ForeignKey("teams.id"), primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    role = Column(String, nullable=False, default=TeamRole.MEMBER.value)


# ============================================================
# TEAM CONTENT
# ============================================================

class MeetingRow(Base):
    __tablename__ = "meetings"

    id = Column(String, primary_key=True)
    team_id = Column(String, ForeignKey("teams.id"), nullable=False)
    title = Column(String, nullable=False)
    meet_link = Column(String, nullable=False)
    date_time = Column(String, nullable=False)
    created_by = Column(String, ForeignKey("users.id"), nullable=False)


class DocumentRow(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    team_id = Column(String, ForeignKey("teams.id"), nullable=False)
    name = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    password_protected = Column(Integer, nullable=False, default=0)
    password = Column(String, nullable=True)  # bcrypt hash, set iff protected
    created_by = Column(String, ForeignKey("users.id"), nullable=False)


class FileRow(Base):
    __tablename__ = "files"

    id = Column(String, primary_key=True)
    team_id = Column(String, ForeignKey("teams.id"), nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default=FileKind.OTHER.value)
    url = Column(Text, nullable=False)
    created_by = Column(String, ForeignKey("users.id"), nullable=False)


class MessageRow(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True)
    team_id = Column(String, ForeignKey("teams.id"), nullable=False)
    channel_id = Column(String, nullable=False)
    sender_id = Column(String, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(String, nullable=False)

    __table_args__ = (
        Index("ix_messages_team_channel", "team_id", "channel_id"),
    )


# Tables cleared by a team cascade, with the column holding the team id
TEAM_SCOPED_TABLES = [
    (TeamMemberRow, TeamMemberRow.team_id),
    (MeetingRow, MeetingRow.team_id),
    (DocumentRow, DocumentRow.team_id),
    (FileRow, FileRow.team_id),
    (MessageRow, MessageRow.team_id),
    (TeamRow, TeamRow.id),
]
