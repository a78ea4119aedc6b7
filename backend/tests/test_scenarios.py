"""End-to-end workspace scenarios across restarts and mutation sequences"""
import random

import pytest
from sqlalchemy import text

from auth import SessionIdentity
from data_access import WorkspaceDB
from database import PersistentStore
from errors import AuthorizationError, ConfirmationRequired
from models import TeamRole
from state import AppState
from tests.conftest import PASSWORD, assert_single_owner


async def _restart(storage) -> AppState:
    state = AppState(WorkspaceDB(PersistentStore(storage)), SessionIdentity(storage))
    await state.start()
    return state


@pytest.mark.asyncio
async def test_signup_login_create_team(app_state):
    assert (await app_state.signup("Ana", "ana@x.com", "pw1")).success
    app_state.logout()

    assert await app_state.login("ana@x.com", "pw1")
    ana = app_state.current_user
    assert ana.name == "Ana"

    result = await app_state.create_team("Squad")
    team = app_state.get_team(result.id)
    assert team.owner_id == ana.id
    assert len(team.members) == 1
    assert team.members[0].user_id == ana.id
    assert team.members[0].role == TeamRole.OWNER


@pytest.mark.asyncio
async def test_adding_unknown_user_leaves_store_unchanged(app_state, storage, store):
    await app_state.signup("Ana", "ana@x.com", "pw1")
    team_id = (await app_state.create_team("Squad")).id
    blob = storage.get(store.key)
    before = app_state.snapshot

    result = await app_state.add_team_member(team_id, "bob@x.com")
    assert result.success is False
    assert result.message == "User not found."
    assert storage.get(store.key) == blob
    assert app_state.snapshot is before


@pytest.mark.asyncio
async def test_protected_document_is_not_listed_in_plaintext(app_state, squad, store):
    await app_state.login("cara@x.com", PASSWORD)
    result = await app_state.add_document(squad, "Salaries", "top secret", password="secret")

    async with store.session() as session:
        raw = (await session.execute(
            text("SELECT password_protected, content FROM documents WHERE id = :id"),
            {"id": result.id},
        )).one()
    assert raw.password_protected == 1
    assert raw.content == "top secret"

    doc = app_state.team_documents(squad)[0]
    assert doc.password_protected is True
    assert doc.content is None
    assert "top secret" not in doc.model_dump_json()
    assert await app_state.open_document(result.id, "secret") == "top secret"


@pytest.mark.asyncio
async def test_restart_reproduces_snapshot(app_state, squad, crew, storage):
    await app_state.login("ana@x.com", PASSWORD)
    await app_state.add_meeting(squad, "Kickoff", "https://meet/1", "2031-01-01T09:00:00+00:00")
    await app_state.add_document(squad, "Notes", "hello")
    await app_state.add_document(squad, "Locked", "hidden", password="pw")
    await app_state.add_file(squad, "deck.pdf", "https://x/deck.pdf")
    await app_state.send_message(squad, "public", "hi all")
    await app_state.send_message(squad, crew["bob"].id, "hi bob")

    restarted = await _restart(storage)
    try:
        assert restarted.snapshot == app_state.snapshot
        assert restarted.current_user == crew["ana"]
    finally:
        await restarted.db.store.close()


@pytest.mark.asyncio
async def test_membership_invariant_holds_after_mixed_mutations(app_state, squad, crew):
    rng = random.Random(7)
    users = list(crew.values())
    await app_state.login("ana@x.com", PASSWORD)
    second = (await app_state.create_team("Second")).id
    app_state.logout()

    for _ in range(40):
        actor = rng.choice(users)
        target = rng.choice(users)
        team_id = rng.choice([squad, second])
        await app_state.login(actor.email, PASSWORD)
        action = rng.choice(["add", "remove", "promote", "make_owner"])
        try:
            if action == "add":
                await app_state.add_team_member(team_id, target.email)
            elif action == "remove":
                await app_state.remove_team_member(team_id, target.id, confirm=True)
            elif action == "promote":
                await app_state.update_user_role(team_id, target.id, TeamRole.SUB_ADMIN)
            else:
                await app_state.update_user_role(team_id, target.id, TeamRole.OWNER)
        except (AuthorizationError, ConfirmationRequired):
            pass
        app_state.logout()
        assert_single_owner(app_state.snapshot.teams)

    # The facade agrees with the cache
    assert_single_owner(await app_state.db.list_teams())
