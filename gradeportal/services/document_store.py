"""
Storage abstraction for the portal's three collections.

``users`` holds account records keyed by ``uid``, ``submissions`` holds
submission records keyed by ``id`` and ``credentials`` holds sign-in
credentials keyed by lower-cased ``email``. Backends are selected with the
``STORAGE_BACKEND`` environment variable (``dynamodb`` or ``memory``).
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .. import config
from .query_builder import UserListQuery

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class DocumentStore(Protocol):
    """Interface every storage backend implements."""

    # users
    def get_user(self, uid: str) -> Optional[Record]:
        ...

    def put_user(self, record: Mapping[str, Any]) -> Record:
        """Create or fully replace an account record."""
        ...

    def update_user(self, uid: str, changes: Mapping[str, Any]) -> Record:
        """Merge ``changes`` into an existing account.

        Raises:
            NotFoundError: If no account has this uid
        """
        ...

    def list_users(self, query: UserListQuery) -> List[Record]:
        """Run a composed list query and return at most ``query.limit`` records."""
        ...

    def count_users(self, equals: Mapping[str, str]) -> int:
        ...

    def field_values(self, field: str, equals: Mapping[str, str], limit: int) -> List[str]:
        """Values of ``field`` from up to ``limit`` matching users that have it set."""
        ...

    # submissions
    def get_submission(self, submission_id: str) -> Optional[Record]:
        ...

    def put_submission(self, record: Mapping[str, Any]) -> Record:
        ...

    def update_submission(self, submission_id: str, changes: Mapping[str, Any]) -> Record:
        """Merge ``changes`` into an existing submission.

        Raises:
            NotFoundError: If no submission has this id
        """
        ...

    def list_submissions(self, field: str, value: str) -> List[Record]:
        """Submissions where ``field == value``, newest ``submittedAt`` first."""
        ...

    def recent_submissions(self, limit: int) -> List[Record]:
        ...

    def count_submissions(self, status: Optional[str] = None) -> int:
        ...

    # credentials
    def get_credential(self, email: str) -> Optional[Record]:
        ...

    def create_credential(self, record: Mapping[str, Any]) -> Record:
        """Insert a credential.

        Raises:
            ConflictError: If the email is already provisioned
        """
        ...

    def update_credential(self, email: str, changes: Mapping[str, Any]) -> Record:
        """Merge ``changes`` into an existing credential.

        Raises:
            NotFoundError: If no credential exists for the email
        """
        ...


_document_store: Optional[DocumentStore] = None
_document_store_lock = threading.Lock()


def get_document_store() -> DocumentStore:
    """Return the configured store, creating it on first use.

    Also used as a FastAPI dependency, so tests may override it.
    """
    global _document_store

    if _document_store is None:
        with _document_store_lock:
            if _document_store is None:
                backend = config.storage_backend()
                if backend == "dynamodb":
                    from .dynamodb_store import DynamoDBDocumentStore

                    logger.info("Initializing DynamoDB document store")
                    _document_store = DynamoDBDocumentStore()
                else:
                    if backend != "memory":
                        logger.warning(f"Unknown STORAGE_BACKEND {backend!r}; using in-memory store")
                    from .memory_store import MemoryDocumentStore

                    logger.info("Initializing in-memory document store")
                    _document_store = MemoryDocumentStore()

    return _document_store


def set_document_store(store: Optional[DocumentStore]) -> None:
    """Replace the process-wide store (``None`` forces re-creation)."""
    global _document_store
    with _document_store_lock:
        _document_store = store
