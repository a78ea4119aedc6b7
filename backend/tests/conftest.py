# tests/conftest.py — Shared test fixtures
import os

import pytest
import pytest_asyncio

# Fast hashing for tests; must be set before auth is imported
os.environ["BCRYPT_ROUNDS"] = "4"

from auth import SessionIdentity
from data_access import WorkspaceDB
from database import PersistentStore
from models import TeamRole
from schemas import User
from state import AppState
from storage import MemoryStorage

PASSWORD = "Password123!"


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest_asyncio.fixture(scope="function")
async def store(storage):
    store = PersistentStore(storage)
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def db(store):
    return WorkspaceDB(store)


@pytest_asyncio.fixture
async def app_state(db, storage):
    state = AppState(db, SessionIdentity(storage))
    await state.start()
    return state


async def make_user(db: WorkspaceDB, name: str, email: str, password: str = PASSWORD) -> User:
    result = await db.signup(name, email, password)
    assert result.success, result.message
    return await db.get_user_by_email(email)


@pytest_asyncio.fixture
async def ana(db):
    """Account used as a team owner"""
    return await make_user(db, "Ana", "ana@x.com")


@pytest_asyncio.fixture
async def crew(app_state):
    """Ana, Bob, Cara and Dan signed up through the state layer, nobody signed in"""
    users = {}
    for name in ("Ana", "Bob", "Cara", "Dan"):
        email = f"{name.lower()}@x.com"
        result = await app_state.signup(name, email, PASSWORD)
        assert result.success, result.message
        users[name.lower()] = app_state.current_user
        app_state.logout()
    return users


@pytest_asyncio.fixture
async def squad(app_state, crew):
    """Team 'Squad': Ana owner, Bob sub-admin, Cara member. Dan is outside."""
    await app_state.login("ana@x.com", PASSWORD)
    result = await app_state.create_team("Squad")
    team_id = result.id
    await app_state.add_team_member(team_id, "bob@x.com")
    await app_state.add_team_member(team_id, "cara@x.com")
    await app_state.update_user_role(team_id, crew["bob"].id, TeamRole.SUB_ADMIN)
    app_state.logout()
    return team_id


def assert_single_owner(teams):
    """Exactly one owner per team, matching the team's owner_id"""
    for team in teams:
        owners = [m for m in team.members if m.role == TeamRole.OWNER]
        assert len(owners) == 1, team
        assert owners[0].user_id == team.owner_id
