"""
Workspace data access — the only code that opens sessions on the store.

Queries read fresh rows on every call and return pydantic entities.
Mutations validate, write in one transaction, persist the blob, and return
an OperationResult. No authorization happens here; see policy.py.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import select, delete, literal_column
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import AuthService
from database import PersistentStore
from models import (
    UserRow, TeamRow, TeamMemberRow, MeetingRow, DocumentRow, FileRow, MessageRow,
    TEAM_SCOPED_TABLES, TeamRole, new_id,
)
from schemas import (
    User, Team, TeamMember, Meeting, Document, FileLockerItem, ChatMessage,
    UserCreate, TeamCreate, MeetingCreate, DocumentCreate, FileCreate, MessageCreate,
    OperationResult,
)

logger = logging.getLogger("collaborax.data")

# SQLite keeps rowid in insertion order for these tables
INSERTION_ORDER = literal_column("rowid")


def _document_entity(row: DocumentRow) -> Document:
    protected = row.password_protected == 1
    return Document(
        id=row.id,
        team_id=row.team_id,
        name=row.name,
        content=None if protected else row.content,
        password_protected=protected,
        created_by=row.created_by,
    )


class WorkspaceDB:
    """Typed query/mutation facade over a PersistentStore"""

    def __init__(self, store: PersistentStore):
        self.store = store

    # ── Queries ──────────────────────────────────────────────

    async def _all(self, stmt) -> list:
        async with self.store.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_users(self) -> List[User]:
        rows = await self._all(select(UserRow).order_by(INSERTION_ORDER))
        return [User.model_validate(r) for r in rows]

    async def list_teams(self) -> List[Team]:
        teams = await self._all(select(TeamRow).order_by(INSERTION_ORDER))
        members = await self._all(select(TeamMemberRow).order_by(INSERTION_ORDER))
        by_team: Dict[str, List[TeamMember]] = defaultdict(list)
        for m in members:
            by_team[m.team_id].append(TeamMember(user_id=m.user_id, role=TeamRole(m.role)))
        return [
            Team(id=t.id, name=t.name, owner_id=t.owner_id, members=tuple(by_team.get(t.id, ())))
            for t in teams
        ]

    async def list_meetings(self) -> List[Meeting]:
        rows = await self._all(select(MeetingRow).order_by(INSERTION_ORDER))
        return [Meeting.model_validate(r) for r in rows]

    async def list_documents(self) -> List[Document]:
        rows = await self._all(select(DocumentRow).order_by(INSERTION_ORDER))
        return [_document_entity(r) for r in rows]

    async def list_files(self) -> List[FileLockerItem]:
        rows = await self._all(select(FileRow).order_by(INSERTION_ORDER))
        return [FileLockerItem.model_validate(r) for r in rows]

    async def list_messages(self) -> List[ChatMessage]:
        rows = await self._all(select(MessageRow).order_by(INSERTION_ORDER))
        return [ChatMessage.model_validate(r) for r in rows]

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self.store.session() as session:
            row = await self._user_row_by_email(session, email)
            return User.model_validate(row) if row else None

    @staticmethod
    async def _user_row_by_email(session: AsyncSession, email: str) -> Optional[UserRow]:
        result = await session.execute(select(UserRow).where(UserRow.email == email))
        return result.scalar_one_or_none()

    # ── Auth ─────────────────────────────────────────────────

    async def signup(self, name: str, email: str, password: str) -> OperationResult:
        try:
            body = UserCreate(name=name, email=email, password=password)
        except ValidationError as e:
            return OperationResult.invalid(e)
        user_id = new_id("user")
        try:
            async with self.store.session() as session:
                session.add(UserRow(
                    id=user_id,
                    name=body.name,
                    email=body.email,
                    password=AuthService.hash_password(body.password),
                ))
        except IntegrityError:
            logger.info(f"Signup rejected, email already registered: {email}")
            return OperationResult.fail("CX-AUTH-002")

        persisted = await self.store.persist()
        logger.info(f"User registered: {user_id}")
        return OperationResult.ok("Account created.", id=user_id, persisted=persisted)

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        async with self.store.session() as session:
            row = await self._user_row_by_email(session, email)
        if row is None or not AuthService.verify_password(password, row.password):
            return None
        return User.model_validate(row)

    # ── Teams & membership ───────────────────────────────────

    async def create_team(self, name: str, owner: User) -> OperationResult:
        try:
            body = TeamCreate(name=name)
        except ValidationError as e:
            return OperationResult.invalid(e)
        team_id = new_id("team")
        async with self.store.session() as session:
            if await session.get(UserRow, owner.id) is None:
                return OperationResult.fail("CX-REF-001")
            session.add(TeamRow(id=team_id, name=body.name, owner_id=owner.id))
            # Flush the team first so the owner row follows it in insertion order
            await session.flush()
            session.add(TeamMemberRow(team_id=team_id, user_id=owner.id, role=TeamRole.OWNER.value))

        persisted = await self.store.persist()
        logger.info(f"Team created: {team_id} (owner {owner.id})")
        return OperationResult.ok("Team created.", id=team_id, persisted=persisted)

    async def add_team_member(self, team_id: str, email: str) -> OperationResult:
        try:
            async with self.store.session() as session:
                if await session.get(TeamRow, team_id) is None:
                    return OperationResult.fail("CX-TEAM-001")
                user = await self._user_row_by_email(session, email)
                if user is None:
                    return OperationResult.fail("CX-TEAM-002")
                if await session.get(TeamMemberRow, (team_id, user.id)) is not None:
                    return OperationResult.fail("CX-TEAM-003")
                session.add(TeamMemberRow(team_id=team_id, user_id=user.id, role=TeamRole.MEMBER.value))
                user_id = user.id
        except IntegrityError:
            return OperationResult.fail("CX-TEAM-003")

        persisted = await self.store.persist()
        logger.info(f"Member {user_id} added to team {team_id}")
        return OperationResult.ok("Member added.", id=user_id, persisted=persisted)

    async def remove_team_member(self, team_id: str, user_id: str) -> OperationResult:
        async with self.store.session() as session:
            row = await session.get(TeamMemberRow, (team_id, user_id))
            if row is None:
                return OperationResult.fail("CX-TEAM-004")
            if row.role == TeamRole.OWNER.value:
                return OperationResult.fail("CX-TEAM-005")
            await session.delete(row)

        persisted = await self.store.persist()
        logger.info(f"Member {user_id} removed from team {team_id}")
        return OperationResult.ok("Member removed.", id=user_id, persisted=persisted)

    async def update_user_role(self, team_id: str, user_id: str, role: TeamRole) -> OperationResult:
        try:
            role = TeamRole(role)
        except ValueError:
            return OperationResult.fail("CX-INPUT-001", f"Unknown role: {role!r}")
        if role == TeamRole.OWNER:
            return OperationResult.fail("CX-TEAM-006")
        async with self.store.session() as session:
            row = await session.get(TeamMemberRow, (team_id, user_id))
            if row is None:
                return OperationResult.fail("CX-TEAM-004")
            if row.role == TeamRole.OWNER.value:
                return OperationResult.fail("CX-TEAM-006")
            row.role = role.value

        persisted = await self.store.persist()
        logger.info(f"Role of {user_id} in team {team_id} set to {role.value}")
        return OperationResult.ok("Role updated.", id=user_id, persisted=persisted)

    async def delete_team(self, team_id: str) -> OperationResult:
        """Remove the team and every row scoped to it in one transaction"""
        async with self.store.session() as session:
            if await session.get(TeamRow, team_id) is None:
                return OperationResult.fail("CX-TEAM-001")
            for model, column in TEAM_SCOPED_TABLES:
                await session.execute(delete(model).where(column == team_id))

        persisted = await self.store.persist()
        logger.info(f"Team deleted with all content: {team_id}")
        return OperationResult.ok("Team deleted.", id=team_id, persisted=persisted)

    # ── Team content ─────────────────────────────────────────

    async def _check_refs(self, session: AsyncSession, team_id: str, user_id: str) -> Optional[OperationResult]:
        if await session.get(TeamRow, team_id) is None:
            return OperationResult.fail("CX-TEAM-001")
        if await session.get(UserRow, user_id) is None:
            return OperationResult.fail("CX-REF-001")
        return None

    async def _insert(self, row, team_id: str, user_id: str, label: str) -> OperationResult:
        async with self.store.session() as session:
            failure = await self._check_refs(session, team_id, user_id)
            if failure:
                return failure
            session.add(row)

        persisted = await self.store.persist()
        logger.debug(f"{label} {row.id} added to team {team_id}")
        return OperationResult.ok(f"{label} added.", id=row.id, persisted=persisted)

    async def add_meeting(self, meeting: MeetingCreate) -> OperationResult:
        row = MeetingRow(id=new_id("meet"), **meeting.model_dump())
        return await self._insert(row, meeting.team_id, meeting.created_by, "Meeting")

    async def add_document(self, doc: DocumentCreate) -> OperationResult:
        row = DocumentRow(
            id=new_id("doc"),
            team_id=doc.team_id,
            name=doc.name,
            content=doc.content,
            password_protected=1 if doc.password_protected else 0,
            password=AuthService.hash_password(doc.password) if doc.password_protected else None,
            created_by=doc.created_by,
        )
        return await self._insert(row, doc.team_id, doc.created_by, "Document")

    async def add_file(self, file: FileCreate) -> OperationResult:
        row = FileRow(
            id=new_id("file"),
            team_id=file.team_id,
            name=file.name,
            type=file.type.value,
            url=file.url,
            created_by=file.created_by,
        )
        return await self._insert(row, file.team_id, file.created_by, "File")

    async def add_message(self, msg: MessageCreate) -> OperationResult:
        row = MessageRow(id=new_id("msg"), **msg.model_dump())
        return await self._insert(row, msg.team_id, msg.sender_id, "Message")

    async def open_document(self, document_id: str, password: Optional[str] = None) -> Optional[str]:
        """Document content, or None when missing or the password is wrong"""
        async with self.store.session() as session:
            row = await session.get(DocumentRow, document_id)
        if row is None:
            return None
        if row.password_protected == 1 and not AuthService.verify_password(password or "", row.password):
            return None
        return row.content
