"""
Mailing-list provider interface definition.

The service talks to the provider only through ``MailingListProvider`` so the
HTTP client can be swapped for the in-memory provider in tests and local runs.
"""

from abc import ABC, abstractmethod
from typing import Any, Sequence

from contacts_api.contacts.schemas import (
    BatchOperation,
    BatchResult,
    BatchStatus,
    Member,
    MemberPage,
)
from contacts_api.shared.exceptions import DEFAULT_ERROR_MESSAGE, AppError

# Maximum members per batch subscribe call and per members page.
MAX_BATCH_MEMBERS = 500


class ProviderError(AppError):
    """Error reported by (or while talking to) the mailing-list provider."""

    status_code = 500

    def __init__(
        self,
        message: str = DEFAULT_ERROR_MESSAGE,
        upstream_status: int | None = None,
        problem: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, details=problem)
        self.upstream_status = upstream_status
        self.problem = problem or {}


def problem_message(problem: dict[str, Any] | None, fallback: str | None = None) -> str:
    """Pick the human readable text out of a problem document.

    Args:
        problem: Parsed ``application/problem+json`` body, if any.
        fallback: Raw response text to use when the body has no usable field.

    Returns:
        The ``detail`` field, then ``title``, then the fallback text, then a
        generic message.
    """
    problem = problem or {}
    for key in ("detail", "title"):
        value = problem.get(key)
        if isinstance(value, str) and value.strip():
            return value
    if fallback and fallback.strip():
        return fallback
    return DEFAULT_ERROR_MESSAGE


class MailingListProvider(ABC):
    """Abstract interface for mailing-list providers."""

    @abstractmethod
    async def ping(self) -> dict[str, Any]:
        """Check connectivity and credentials."""
        ...

    @abstractmethod
    async def get_members(
        self,
        list_id: str,
        *,
        count: int,
        offset: int = 0,
        sort_field: str | None = None,
        sort_dir: str | None = None,
        fields: Sequence[str] | None = None,
    ) -> MemberPage:
        """Fetch one page of list members."""
        ...

    @abstractmethod
    async def add_member(self, list_id: str, member: Member) -> Member:
        """Add a new member. Fails if the address is already on the list."""
        ...

    @abstractmethod
    async def update_member(self, list_id: str, subscriber_hash: str, member: Member) -> Member:
        """Update an existing member. Fails if the member does not exist."""
        ...

    @abstractmethod
    async def delete_member(self, list_id: str, subscriber_hash: str) -> None:
        """Archive a member. Fails if the member does not exist."""
        ...

    @abstractmethod
    async def batch_members(
        self,
        list_id: str,
        members: Sequence[Member],
        update_existing: bool = True,
    ) -> BatchResult:
        """Add or update up to ``MAX_BATCH_MEMBERS`` members in one call."""
        ...

    @abstractmethod
    async def start_batch(self, operations: Sequence[BatchOperation]) -> BatchStatus:
        """Submit an asynchronous batch of raw API operations."""
        ...

    @abstractmethod
    async def get_batch(self, batch_id: str) -> BatchStatus:
        """Get the status of a batch job."""
        ...

    async def close(self) -> None:
        """Release any underlying resources."""
        return None
