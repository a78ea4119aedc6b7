# main.py — CollaboraX workspace bootstrap
# Features:
# - One storage, store, facade and state instance per process
# - Startup configuration warnings
# - `python main.py` opens the workspace and reports what it holds

import os
import asyncio
import logging
import argparse
from typing import Optional

from auth import SessionIdentity
from data_access import WorkspaceDB
from database import PersistentStore
from state import AppState
from storage import FileStorage, KeyValueStorage, MemoryStorage

# Logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("collaborax")

STORAGE_DIR = os.getenv("COLLABORAX_STORAGE_DIR", "")


def _check_startup_config(storage_dir: str) -> bool:
    """Warn about settings that make the workspace lose data."""
    warnings = []

    if not storage_dir:
        warnings.append("⚠️  COLLABORAX_STORAGE_DIR is not set — workspace data lives in memory only")

    rounds = int(os.getenv("BCRYPT_ROUNDS", "12"))
    if rounds < 10:
        warnings.append(f"⚠️  BCRYPT_ROUNDS={rounds} is below 10 — use this for tests only")

    for w in warnings:
        logger.warning(w)

    return len(warnings) == 0


def build_storage(storage_dir: Optional[str] = None) -> KeyValueStorage:
    storage_dir = STORAGE_DIR if storage_dir is None else storage_dir
    if storage_dir:
        return FileStorage(storage_dir)
    return MemoryStorage()


async def create_app_state(storage: Optional[KeyValueStorage] = None) -> AppState:
    """Wire and start the workspace layers around one storage backend"""
    storage = storage if storage is not None else build_storage()
    store = PersistentStore(storage)
    state = AppState(WorkspaceDB(store), SessionIdentity(storage))
    await state.start()
    return state


async def _run(storage_dir: str) -> AppState:
    logger.info("🚀 Opening CollaboraX workspace...")
    _check_startup_config(storage_dir)
    state = await create_app_state(build_storage(storage_dir))
    snap = state.snapshot
    logger.info(
        f"Workspace ready: {len(snap.users)} users, {len(snap.teams)} teams, "
        f"{len(snap.meetings)} meetings, {len(snap.documents)} documents, "
        f"{len(snap.files)} files, {len(snap.messages)} messages"
    )
    if state.current_user:
        logger.info(f"Signed in as {state.current_user.name} <{state.current_user.email}>")
    await state.db.store.close()
    return state


def main():
    parser = argparse.ArgumentParser(description="CollaboraX workspace")
    parser.add_argument("--storage", type=str, default=STORAGE_DIR, help="Directory holding the workspace blob")
    args = parser.parse_args()
    asyncio.run(_run(args.storage))


if __name__ == "__main__":
    main()
