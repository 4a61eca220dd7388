"""
In-memory mailing-list provider for tests and local development.

Mirrors the Mailchimp behaviours the service relies on: duplicate adds and
unknown members fail, batch subscribe partitions rows into new/updated/
failed, and DELETE batch operations are applied when the batch starts.
"""

import logging
import re
from collections import deque
from datetime import datetime, timezone
from typing import Any, Sequence

from contacts_api.contacts.schemas import (
    BatchMemberError,
    BatchOperation,
    BatchResult,
    BatchStatus,
    MergeFields,
    Member,
    MemberPage,
)
from contacts_api.mailchimp.interface import MAX_BATCH_MEMBERS, MailingListProvider, ProviderError
from contacts_api.shared.hashing import subscriber_hash

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MEMBER_PATH = re.compile(r"^/lists/(?P<list_id>[^/]+)/members/(?P<hash>[0-9a-f]{32})$")

INVALID_EMAIL_MESSAGE = "Please provide a valid email address."
NOT_FOUND_MESSAGE = "The requested resource could not be found."


class InMemoryMailingListProvider(MailingListProvider):
    """Mock mailing-list provider keeping members in process memory."""

    def __init__(self) -> None:
        self._lists: dict[str, dict[str, Member]] = {}
        self._batches: dict[str, BatchStatus] = {}
        self._batch_calls: list[list[Member]] = []
        self._started_batches: list[list[BatchOperation]] = []
        self._status_checks: int = 0
        self._status_sequence: deque[str] = deque()
        self._next_batch_id: int = 1
        self._should_fail: bool = False
        self._fail_error: str = "Mock failure"

    def reset(self) -> None:
        self._lists.clear()
        self._batches.clear()
        self._batch_calls.clear()
        self._started_batches.clear()
        self._status_checks = 0
        self._status_sequence.clear()
        self._next_batch_id = 1
        self._should_fail = False
        self._fail_error = "Mock failure"

    def configure_failure(self, should_fail: bool = True, error_message: str = "Mock failure") -> None:
        self._should_fail = should_fail
        self._fail_error = error_message

    def configure_batch_statuses(self, *statuses: str) -> None:
        """Statuses returned by successive ``get_batch`` calls.

        Once the sequence is exhausted every batch reports ``finished``.
        """
        self._status_sequence = deque(statuses)

    @property
    def batch_calls(self) -> list[list[Member]]:
        return [list(call) for call in self._batch_calls]

    @property
    def started_batches(self) -> list[list[BatchOperation]]:
        return [list(ops) for ops in self._started_batches]

    @property
    def status_checks(self) -> int:
        return self._status_checks

    def members(self, list_id: str) -> list[Member]:
        return list(self._lists.get(list_id, {}).values())

    def _check_failure(self) -> None:
        if self._should_fail:
            raise ProviderError(message=self._fail_error, upstream_status=500)

    def _store(self, list_id: str) -> dict[str, Member]:
        return self._lists.setdefault(list_id, {})

    @staticmethod
    def _stamp(member: Member, hash_: str) -> Member:
        return member.model_copy(
            update={
                "id": hash_,
                "status": member.status or "subscribed",
                "last_changed": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            },
            deep=True,
        )

    async def ping(self) -> dict[str, Any]:
        self._check_failure()
        return {"health_status": "Everything's Chimpy!"}

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
        self._check_failure()
        members = self.members(list_id)
        if sort_field:
            members.sort(
                key=lambda m: getattr(m, sort_field, None) or "",
                reverse=(sort_dir or "").upper() == "DESC",
            )
        return MemberPage(
            members=[m.model_copy(deep=True) for m in members[offset:offset + count]],
            total_items=len(members),
        )

    async def add_member(self, list_id: str, member: Member) -> Member:
        self._check_failure()
        if not EMAIL_PATTERN.match(member.email_address or ""):
            raise ProviderError(message=INVALID_EMAIL_MESSAGE, upstream_status=400)

        store = self._store(list_id)
        hash_ = subscriber_hash(member.email_address)
        if hash_ in store:
            raise ProviderError(
                message=(
                    f"{member.email_address} is already a list member. "
                    "Use PUT to insert or update list members."
                ),
                upstream_status=400,
                problem={"title": "Member Exists"},
            )

        store[hash_] = self._stamp(member, hash_)
        logger.info("Mock: member added", extra={"list_id": list_id, "subscriber_hash": hash_})
        return store[hash_].model_copy(deep=True)

    async def update_member(self, list_id: str, subscriber_hash: str, member: Member) -> Member:
        self._check_failure()
        store = self._store(list_id)
        existing = store.get(subscriber_hash)
        if existing is None:
            raise ProviderError(message=NOT_FOUND_MESSAGE, upstream_status=404)

        merge_fields = MergeFields.model_validate(
            {
                **existing.merge_fields.model_dump(),
                **member.merge_fields.model_dump(exclude_none=True),
            }
        )
        updated = existing.model_copy(
            update={"merge_fields": merge_fields, "status": member.status or existing.status}
        )
        store[subscriber_hash] = self._stamp(updated, subscriber_hash)
        return store[subscriber_hash].model_copy(deep=True)

    async def delete_member(self, list_id: str, subscriber_hash: str) -> None:
        self._check_failure()
        store = self._store(list_id)
        if store.pop(subscriber_hash, None) is None:
            raise ProviderError(message=NOT_FOUND_MESSAGE, upstream_status=404)

    async def batch_members(
        self,
        list_id: str,
        members: Sequence[Member],
        update_existing: bool = True,
    ) -> BatchResult:
        self._check_failure()
        if len(members) > MAX_BATCH_MEMBERS:
            raise ProviderError(
                message=f"Batch subscribe accepts at most {MAX_BATCH_MEMBERS} members",
                upstream_status=400,
            )

        self._batch_calls.append(list(members))
        store = self._store(list_id)
        result = BatchResult()

        for member in members:
            if not EMAIL_PATTERN.match(member.email_address or ""):
                result.failed_members.append(
                    BatchMemberError(
                        email_address=member.email_address,
                        error=INVALID_EMAIL_MESSAGE,
                        error_code="ERROR_GENERIC",
                        field="email_address",
                        field_message=INVALID_EMAIL_MESSAGE,
                    )
                )
                continue

            hash_ = subscriber_hash(member.email_address)
            if hash_ in store:
                if not update_existing:
                    result.failed_members.append(
                        BatchMemberError(
                            email_address=member.email_address,
                            error=f"{member.email_address} is already a list member",
                            error_code="ERROR_CONTACT_EXISTS",
                        )
                    )
                    continue
                store[hash_] = self._stamp(member, hash_)
                result.updated_members.append(store[hash_].model_copy(deep=True))
            else:
                store[hash_] = self._stamp(member, hash_)
                result.new_members.append(store[hash_].model_copy(deep=True))

        return result

    async def start_batch(self, operations: Sequence[BatchOperation]) -> BatchStatus:
        self._check_failure()
        self._started_batches.append(list(operations))

        errored = 0
        for op in operations:
            match = MEMBER_PATH.match(op.path)
            if op.method.upper() == "DELETE" and match:
                store = self._store(match.group("list_id"))
                if store.pop(match.group("hash"), None) is None:
                    errored += 1
            else:
                errored += 1

        batch_id = f"mock-batch-{self._next_batch_id:06d}"
        self._next_batch_id += 1
        status = BatchStatus(
            id=batch_id,
            status="pending",
            total_operations=len(operations),
            finished_operations=len(operations) - errored,
            errored_operations=errored,
        )
        self._batches[batch_id] = status
        return status.model_copy()

    async def get_batch(self, batch_id: str) -> BatchStatus:
        self._check_failure()
        self._status_checks += 1
        batch = self._batches.get(batch_id)
        if batch is None:
            raise ProviderError(message=NOT_FOUND_MESSAGE, upstream_status=404)

        status = self._status_sequence.popleft() if self._status_sequence else "finished"
        return batch.model_copy(update={"status": status})
