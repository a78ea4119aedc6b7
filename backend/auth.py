# auth.py — Password hashing and persisted session identity for CollaboraX
# Features:
# - bcrypt salted hashes for account and document passwords
# - Signed-in user persisted under its own storage key, apart from the database blob

import os
import json
import logging
from typing import Optional

import bcrypt
from pydantic import ValidationError

from errors import StorageError
from schemas import User
from storage import KeyValueStorage

logger = logging.getLogger("collaborax.auth")

# ============================================================
# CONFIGURATION
# ============================================================

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
SESSION_STORAGE_KEY = os.getenv("COLLABORAX_SESSION_KEY", "collaborax_current_user")


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Password hashing helpers"""

    @staticmethod
    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: Optional[str]) -> bool:
        if not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed hash in storage
            logger.warning("Stored password hash could not be parsed")
            return False


# ============================================================
# SESSION IDENTITY
# ============================================================

class SessionIdentity:
    """The signed-in user, kept in durable storage across restarts.

    Not re-validated on its own; AppState.start() drops it when the user
    row no longer exists.
    """

    def __init__(self, storage: KeyValueStorage, key: str = SESSION_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self.current_user: Optional[User] = None

    @property
    def signed_in(self) -> bool:
        return self.current_user is not None

    def load(self) -> Optional[User]:
        raw = self.storage.get(self.key)
        if not raw or raw == "null":
            self.current_user = None
            return None
        try:
            self.current_user = User.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding unreadable session identity: {e}")
            self.current_user = None
        return self.current_user

    def sign_in(self, user: User) -> None:
        self.current_user = user
        self._save()

    def sign_out(self) -> None:
        self.current_user = None
        self._save()

    def _save(self) -> None:
        value = self.current_user.model_dump_json() if self.current_user else "null"
        try:
            self.storage.set(self.key, value)
        except StorageError as e:
            logger.warning(f"⚠️  Session identity not saved: {e}")
