"""
CollaboraX — Application State Cache

Holds a frozen snapshot of every relation, rebuilt wholesale by
reload_all() after each successful mutation. Consumers read through the
derived accessors and write through the mutation wrappers, which check
team roles (policy.py) before touching WorkspaceDB.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from pydantic import ValidationError

from auth import SessionIdentity
from data_access import WorkspaceDB
from errors import ConfirmationRequired, NotSignedInError
from models import PUBLIC_CHANNEL, FileKind, TeamRole, utcnow
from schemas import (
    User, Team, Meeting, Document, FileLockerItem, ChatMessage, DashboardSummary,
    MeetingCreate, DocumentCreate, FileCreate, MessageCreate, OperationResult,
    guess_file_kind,
)
import policy

logger = logging.getLogger("collaborax.state")

DASHBOARD_LIMIT = 3


def parse_instant(value: str) -> datetime:
    """ISO-8601 to an aware datetime; naive values are taken as UTC.

    Unparseable values sort as the earliest instant instead of raising.
    """
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Snapshot:
    users: Tuple[User, ...] = ()
    teams: Tuple[Team, ...] = ()
    meetings: Tuple[Meeting, ...] = ()
    documents: Tuple[Document, ...] = ()
    files: Tuple[FileLockerItem, ...] = ()
    messages: Tuple[ChatMessage, ...] = ()


class AppState:
    """Session-lifetime cache over WorkspaceDB"""

    def __init__(self, db: WorkspaceDB, session: SessionIdentity):
        self.db = db
        self.session = session
        self.snapshot = Snapshot()
        self.ready = False

    # ── Lifecycle ────────────────────────────────────────────

    async def start(self) -> None:
        await self.db.store.initialize()
        await self.reload_all()
        user = self.session.load()
        if user is not None and self.get_user(user.id) is None:
            logger.info(f"Stored session references missing user {user.id}, signing out")
            self.session.sign_out()
        self.ready = True

    async def reload_all(self) -> Snapshot:
        users = await self.db.list_users()
        teams = await self.db.list_teams()
        meetings = await self.db.list_meetings()
        documents = await self.db.list_documents()
        files = await self.db.list_files()
        messages = await self.db.list_messages()
        self.snapshot = Snapshot(
            users=tuple(users),
            teams=tuple(teams),
            meetings=tuple(meetings),
            documents=tuple(documents),
            files=tuple(files),
            messages=tuple(messages),
        )
        return self.snapshot

    @property
    def current_user(self) -> Optional[User]:
        return self.session.current_user

    @property
    def unsaved_changes(self) -> bool:
        return self.db.store.unsaved_changes

    def _require_user(self) -> User:
        user = self.session.current_user
        if user is None:
            raise NotSignedInError()
        return user

    # ── Accessors ────────────────────────────────────────────

    def get_team(self, team_id: str) -> Optional[Team]:
        return next((t for t in self.snapshot.teams if t.id == team_id), None)

    def get_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.snapshot.users if u.id == user_id), None)

    def member_role(self, team_id: str, user_id: str) -> Optional[TeamRole]:
        return policy.role_of(self.get_team(team_id), user_id)

    def user_teams(self, user_id: Optional[str] = None) -> Tuple[Team, ...]:
        if user_id is None:
            if self.current_user is None:
                return ()
            user_id = self.current_user.id
        return tuple(t for t in self.snapshot.teams if t.member(user_id) is not None)

    def team_meetings(self, team_id: str) -> Tuple[Meeting, ...]:
        meetings = [m for m in self.snapshot.meetings if m.team_id == team_id]
        meetings.sort(key=lambda m: parse_instant(m.date_time), reverse=True)
        return tuple(meetings)

    def team_documents(self, team_id: str) -> Tuple[Document, ...]:
        return tuple(d for d in self.snapshot.documents if d.team_id == team_id)

    def team_files(self, team_id: str) -> Tuple[FileLockerItem, ...]:
        return tuple(f for f in self.snapshot.files if f.team_id == team_id)

    def team_messages(self, team_id: str, channel_id: str) -> Tuple[ChatMessage, ...]:
        """Messages of one channel, oldest first. The same for every reader."""
        selected = [
            m for m in self.snapshot.messages
            if m.team_id == team_id and m.channel_id == channel_id
        ]
        selected.sort(key=lambda m: parse_instant(m.timestamp))
        return tuple(selected)

    def direct_conversation(self, team_id: str, user_id: str, viewer_id: Optional[str] = None) -> Tuple[ChatMessage, ...]:
        """Both directions of a direct exchange: channel user_id from the
        viewer, merged with channel viewer_id from user_id.
        """
        if viewer_id is None:
            viewer_id = self.current_user.id if self.current_user else None
        if viewer_id is None or viewer_id == user_id or PUBLIC_CHANNEL in (viewer_id, user_id):
            return ()
        selected = [
            m for m in self.snapshot.messages
            if m.team_id == team_id
            and ((m.sender_id, m.channel_id) == (viewer_id, user_id)
                 or (m.sender_id, m.channel_id) == (user_id, viewer_id))
        ]
        selected.sort(key=lambda m: parse_instant(m.timestamp))
        return tuple(selected)

    def direct_channels(self, team_id: str, viewer_id: Optional[str] = None) -> Tuple[User, ...]:
        """Team members the viewer can open a direct channel with"""
        team = self.get_team(team_id)
        if team is None:
            return ()
        if viewer_id is None and self.current_user is not None:
            viewer_id = self.current_user.id
        users = (self.get_user(m.user_id) for m in team.members if m.user_id != viewer_id)
        return tuple(u for u in users if u is not None)

    def dashboard(self, now: Optional[datetime] = None) -> DashboardSummary:
        if self.current_user is None:
            return DashboardSummary()
        now = now or utcnow()
        teams = self.user_teams()
        team_ids = {t.id for t in teams}
        upcoming = sorted(
            (m for m in self.snapshot.meetings if m.team_id in team_ids and parse_instant(m.date_time) > now),
            key=lambda m: parse_instant(m.date_time),
        )
        documents = [d for d in self.snapshot.documents if d.team_id in team_ids]
        return DashboardSummary(
            teams=teams,
            upcoming_meetings=tuple(upcoming[:DASHBOARD_LIMIT]),
            recent_documents=tuple(documents[:DASHBOARD_LIMIT]),
            total_documents=len(documents),
        )

    # ── Session ──────────────────────────────────────────────

    async def login(self, email: str, password: str) -> bool:
        user = await self.db.authenticate(email, password)
        if user is None:
            return False
        self.session.sign_in(user)
        logger.info(f"User signed in: {user.id}")
        return True

    def logout(self) -> None:
        if self.current_user is not None:
            logger.info(f"User signed out: {self.current_user.id}")
        self.session.sign_out()

    async def signup(self, name: str, email: str, password: str) -> OperationResult:
        result = await self.db.signup(name, email, password)
        if not result.success:
            return result
        await self.reload_all()
        await self.login(email, password)
        return result

    # ── Mutations ────────────────────────────────────────────

    async def _after(self, result: OperationResult) -> OperationResult:
        if result.success:
            await self.reload_all()
        return result

    async def create_team(self, name: str) -> OperationResult:
        user = self._require_user()
        return await self._after(await self.db.create_team(name, user))

    async def add_meeting(self, team_id: str, title: str, meet_link: str, date_time: str) -> OperationResult:
        user = self._require_user()
        policy.require_permission(self.get_team(team_id), user.id, "content:write")
        try:
            meeting = MeetingCreate(
                team_id=team_id, title=title, meet_link=meet_link,
                date_time=date_time, created_by=user.id,
            )
        except ValidationError as e:
            return OperationResult.invalid(e)
        return await self._after(await self.db.add_meeting(meeting))

    async def add_document(self, team_id: str, name: str, content: str, password: Optional[str] = None) -> OperationResult:
        user = self._require_user()
        policy.require_permission(self.get_team(team_id), user.id, "content:write")
        try:
            doc = DocumentCreate(
                team_id=team_id, name=name, content=content,
                password_protected=bool(password), password=password, created_by=user.id,
            )
        except ValidationError as e:
            return OperationResult.invalid(e)
        return await self._after(await self.db.add_document(doc))

    async def add_file(self, team_id: str, name: str, url: str, kind: Optional[FileKind] = None) -> OperationResult:
        """Add a locker item. Without an explicit kind, the name decides it."""
        user = self._require_user()
        policy.require_permission(self.get_team(team_id), user.id, "content:write")
        try:
            file = FileCreate(
                team_id=team_id, name=name, url=url,
                type=kind if kind is not None else guess_file_kind(name),
                created_by=user.id,
            )
        except ValidationError as e:
            return OperationResult.invalid(e)
        return await self._after(await self.db.add_file(file))

    async def add_link(self, team_id: str, name: str, url: str) -> OperationResult:
        return await self.add_file(team_id, name, url, kind=FileKind.LINK)

    async def send_message(self, team_id: str, channel_id: str, content: str) -> OperationResult:
        user = self._require_user()
        policy.check_channel(self.get_team(team_id), user.id, channel_id)
        try:
            msg = MessageCreate(
                team_id=team_id, channel_id=channel_id, sender_id=user.id,
                content=content, timestamp=utcnow().isoformat(),
            )
        except ValidationError as e:
            return OperationResult.invalid(e)
        return await self._after(await self.db.add_message(msg))

    async def add_team_member(self, team_id: str, email: str) -> OperationResult:
        user = self._require_user()
        policy.require_permission(self.get_team(team_id), user.id, "members:add")
        return await self._after(await self.db.add_team_member(team_id, email))

    async def remove_team_member(self, team_id: str, user_id: str, confirm: bool = False) -> OperationResult:
        user = self._require_user()
        policy.check_remove_member(self.get_team(team_id), user.id, user_id)
        if not confirm:
            raise ConfirmationRequired("Pass confirm=True to remove this member.")
        return await self._after(await self.db.remove_team_member(team_id, user_id))

    async def update_user_role(self, team_id: str, user_id: str, role: TeamRole) -> OperationResult:
        user = self._require_user()
        policy.check_change_role(self.get_team(team_id), user.id, user_id, role)
        return await self._after(await self.db.update_user_role(team_id, user_id, role))

    async def delete_team(self, team_id: str, confirmation: Optional[str] = None) -> OperationResult:
        """Delete the team and all its content; confirmation must be the team name"""
        user = self._require_user()
        team = self.get_team(team_id)
        policy.check_delete_team(team, user.id)
        if confirmation != team.name:
            raise ConfirmationRequired("Type the team name to confirm deletion.")
        return await self._after(await self.db.delete_team(team_id))

    async def open_document(self, document_id: str, password: Optional[str] = None) -> Optional[str]:
        user = self._require_user()
        doc = next((d for d in self.snapshot.documents if d.id == document_id), None)
        if doc is None:
            return None
        policy.require_permission(self.get_team(doc.team_id), user.id, "team:view")
        return await self.db.open_document(document_id, password)
