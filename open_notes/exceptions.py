"""
Exception hierarchy for Open Notes.

Every error carries a machine-readable code so the HTTP layer and the
client stores can tell configuration problems apart from transient failures.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable error identifiers (also used on the wire)."""

    NOTE_NOT_FOUND = "NOTE_NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"
    ID_GENERATION_FAILED = "ID_GENERATION_FAILED"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    AI_CATEGORIZATION_FAILED = "AI_CATEGORIZATION_FAILED"
    AI_ENRICHMENT_FAILED = "AI_ENRICHMENT_FAILED"
    PROCESSING_FAILED = "PROCESSING_FAILED"


class OpenNotesError(Exception):
    """Base exception for all Open Notes errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    code: ErrorCode = ErrorCode.PROCESSING_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "code": self.code.value}
        if self.details:
            payload["details"] = self.details
        return payload


class NoteNotFoundError(OpenNotesError, KeyError):
    code = ErrorCode.NOTE_NOT_FOUND

    def __init__(self, note_id: str):
        super().__init__(f"Note {note_id} not found", details={"note_id": note_id})
        self.note_id = note_id

    def __str__(self) -> str:
        return self.message


class CategoryNotFoundError(OpenNotesError, KeyError):
    code = ErrorCode.CATEGORY_NOT_FOUND

    def __init__(self, category_id: str):
        super().__init__(
            f"Category {category_id} not found", details={"category_id": category_id}
        )
        self.category_id = category_id

    def __str__(self) -> str:
        return self.message


class PersistenceError(OpenNotesError):
    """A storage backend could not read or write a document."""

    code = ErrorCode.PERSISTENCE_FAILED


class ConfigurationError(OpenNotesError):
    """The language model or prompts are not configured (user must fix settings)."""

    code = ErrorCode.CONFIGURATION_ERROR


class ProcessingError(OpenNotesError):
    """A call to the categorization or enrichment endpoint failed."""

    code = ErrorCode.PROCESSING_FAILED

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details)
        self.status_code = status_code


class AIConfigurationError(ProcessingError):
    """Server rejected an AI request because settings are incomplete.

    Distinct from other processing failures so the UI can send the user to
    settings instead of offering a retry.
    """

    code = ErrorCode.CONFIGURATION_ERROR
