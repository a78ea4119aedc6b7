# errors.py — Workspace error catalogue and exception types
# Codes follow CX-{DOMAIN}-{NUMBER}
# Domains: AUTH, TEAM, INPUT, REF, DOC, STORE, SESSION

from typing import Optional


# ============================================================
# ERROR CODE CATALOGUE
# ============================================================

ERROR_CATALOGUE = {
    # Authentication
    "CX-AUTH-001": {"message": "Invalid credentials.", "severity": "warning"},
    "CX-AUTH-002": {"message": "An account with this email already exists.", "severity": "info"},

    # Team membership
    "CX-TEAM-001": {"message": "Team not found.", "severity": "info"},
    "CX-TEAM-002": {"message": "User not found.", "severity": "info"},
    "CX-TEAM-003": {"message": "User is already a member of this team.", "severity": "info"},
    "CX-TEAM-004": {"message": "User is not a member of this team.", "severity": "info"},
    "CX-TEAM-005": {"message": "The team owner cannot be removed.", "severity": "warning"},
    "CX-TEAM-006": {"message": "The owner role cannot be assigned or changed.", "severity": "warning"},
    "CX-TEAM-007": {"message": "Insufficient team permissions.", "severity": "warning"},
    "CX-TEAM-008": {"message": "Confirmation required for this action.", "severity": "info"},

    # Input validation
    "CX-INPUT-001": {"message": "Invalid input.", "severity": "info"},

    # Referential checks
    "CX-REF-001": {"message": "Referenced user does not exist.", "severity": "warning"},

    # Documents
    "CX-DOC-001": {"message": "Document not found.", "severity": "info"},
    "CX-DOC-002": {"message": "Incorrect document password.", "severity": "info"},

    # Storage
    "CX-STORE-001": {"message": "Durable storage rejected the write.", "severity": "warning"},
    "CX-STORE-002": {"message": "Durable storage quota exceeded.", "severity": "warning"},
    "CX-STORE-003": {"message": "Stored database could not be decoded.", "severity": "error"},

    # Session
    "CX-SESSION-001": {"message": "You must be signed in.", "severity": "info"},
}


def message_for(code: str) -> str:
    entry = ERROR_CATALOGUE.get(code)
    return entry["message"] if entry else "Unknown error."


class WorkspaceError(Exception):
    """Base error carrying a catalogue code"""

    code = "CX-UNKNOWN"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        if code:
            self.code = code
        super().__init__(message or message_for(self.code))

    @property
    def message(self) -> str:
        return str(self)


class AuthorizationError(WorkspaceError):
    code = "CX-TEAM-007"


class ConfirmationRequired(WorkspaceError):
    code = "CX-TEAM-008"


class NotSignedInError(WorkspaceError):
    code = "CX-SESSION-001"


class StorageError(WorkspaceError):
    code = "CX-STORE-001"


class StorageQuotaExceeded(StorageError):
    code = "CX-STORE-002"


class CorruptBlobError(WorkspaceError):
    code = "CX-STORE-003"
