"""Custom exceptions for the Synapse knowledge base.

Provides a structured exception hierarchy with error codes and
machine-readable error information. Every failure path of the storage and
service layers raises one of these; nothing is reported through return values.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Not found (1xxx)
    NOT_FOUND = 1000
    NOTE_NOT_FOUND = 1001
    BLOCK_NOT_FOUND = 1002
    FOLDER_NOT_FOUND = 1003
    TAG_NOT_FOUND = 1004
    LINK_NOT_FOUND = 1005
    ATTACHMENT_NOT_FOUND = 1006
    RELATION_NOT_FOUND = 1007

    # Invalid input (2xxx)
    INVALID_INPUT = 2001
    FOLDER_HAS_CHILDREN = 2002
    FOLDER_CYCLE = 2003
    INVALID_BLOCK_TYPE = 2004
    INVALID_LINK_TYPE = 2005
    CONSTRAINT_VIOLATION = 2006

    # Conflict (3xxx)
    CONFLICT = 3001
    TAG_NAME_EXISTS = 3002
    ATTACHMENT_HASH_EXISTS = 3003

    # Storage (4xxx)
    STORAGE_FAILED = 4001
    SCHEMA_INIT_FAILED = 4002
    STORAGE_CONNECTION_FAILED = 4003

    # Filesystem (5xxx)
    CONTENT_READ_FAILED = 5001
    CONTENT_WRITE_FAILED = 5002

    # Search (6xxx)
    SEARCH_FAILED = 6001
    SEARCH_INVALID_QUERY = 6002

    # Configuration (7xxx)
    CONFIG_INVALID = 7001


_NOT_FOUND_CODES = {
    "note": ErrorCode.NOTE_NOT_FOUND,
    "block": ErrorCode.BLOCK_NOT_FOUND,
    "folder": ErrorCode.FOLDER_NOT_FOUND,
    "tag": ErrorCode.TAG_NOT_FOUND,
    "link": ErrorCode.LINK_NOT_FOUND,
    "attachment": ErrorCode.ATTACHMENT_NOT_FOUND,
    "note_folder": ErrorCode.RELATION_NOT_FOUND,
    "note_tag": ErrorCode.RELATION_NOT_FOUND,
    "note_attachment": ErrorCode.RELATION_NOT_FOUND,
    "block_attachment": ErrorCode.RELATION_NOT_FOUND,
    "block_reference": ErrorCode.RELATION_NOT_FOUND,
}


class SynapseError(Exception):
    """Base exception for all knowledge base errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_INPUT,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NotFoundError(SynapseError):
    """Raised when a referenced entity does not exist (or is soft-deleted)."""

    def __init__(
        self,
        entity: str,
        entity_id: str,
        message: Optional[str] = None,
        code: Optional[ErrorCode] = None,
    ):
        super().__init__(
            message or f"{entity.replace('_', ' ').capitalize()} not found: {entity_id}",
            code=code or _NOT_FOUND_CODES.get(entity, ErrorCode.NOT_FOUND),
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class InvalidInputError(SynapseError):
    """Raised when a precondition of an operation is violated."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.INVALID_INPUT,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class ConflictError(SynapseError):
    """Raised when a write would violate a uniqueness constraint."""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.CONFLICT,
    ):
        details = {}
        if entity:
            details["entity"] = entity
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.entity = entity
        self.field = field
        self.value = value


class StorageError(SynapseError):
    """Raised for failures of the underlying relational store."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class SearchError(StorageError):
    """Raised when the full-text engine rejects a query."""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        code: ErrorCode = ErrorCode.SEARCH_INVALID_QUERY,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message, operation="search", code=code, original_error=original_error
        )
        if query is not None:
            self.details["query"] = query[:100]  # Truncate for safety
        self.query = query


class ContentIOError(SynapseError):
    """Raised when reading or writing a note body or attachment payload fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONTENT_WRITE_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = path.replace("\\", "/").split("/")[-1]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class ConfigurationError(SynapseError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
