"""
Contact service for business logic.
"""

import asyncio
import math
from typing import Sequence

from contacts_api.config import Settings
from contacts_api.contacts.csv_parser import CSVParser, dedupe_members, members_to_csv
from contacts_api.contacts.mapper import build_member
from contacts_api.contacts.schemas import (
    BatchOperation,
    BatchResult,
    BatchStatus,
    ContactBody,
    ContactListResponse,
    Member,
)
from contacts_api.mailchimp.interface import MAX_BATCH_MEMBERS, MailingListProvider, ProviderError
from contacts_api.shared.hashing import subscriber_hash
from contacts_api.shared.logging import get_logger

logger = get_logger(__name__)

MAX_CONTACT_LIST = 500
ITEMS_PER_PAGE = 10
DEFAULT_SORT = "DESC"
SORT_FIELD = "last_changed"
LIST_FIELDS = (
    "members.id",
    "members.email_address",
    "members.merge_fields",
    "members.last_changed",
    "total_items",
)

# Batch watchers started without waiting for them; kept referenced until done.
_background_tasks: set[asyncio.Task[None]] = set()


async def cancel_background_tasks() -> None:
    """Cancel batch watchers still running (application shutdown)."""
    tasks = list(_background_tasks)
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Batch watchers cancelled", extra={"count": len(tasks)})


class ContactService:
    """Service for contact management operations."""

    def __init__(
        self,
        provider: MailingListProvider,
        settings: Settings,
        parser: CSVParser | None = None,
    ) -> None:
        """Initialize contact service.

        Args:
            provider: Mailing-list provider.
            settings: Application settings (list id, batch polling).
            parser: Optional CSV parser (for DI).
        """
        self._provider = provider
        self._settings = settings
        self._list_id = settings.mailchimp_list_id
        self._parser = parser or CSVParser()

    async def get_contacts(
        self,
        page: int = 1,
        limit: int = ITEMS_PER_PAGE,
        sort: str = DEFAULT_SORT,
    ) -> ContactListResponse:
        """Get one page of contacts, most recently changed first by default.

        Args:
            page: Page number (1-indexed).
            limit: Number of items per page.
            sort: ``ASC`` or ``DESC`` on the last change timestamp.

        Returns:
            Paginated contact list.
        """
        result = await self._provider.get_members(
            self._list_id,
            count=limit,
            offset=(page - 1) * limit,
            sort_field=SORT_FIELD,
            sort_dir=sort.upper(),
            fields=LIST_FIELDS,
        )
        return ContactListResponse(
            members=result.members,
            total_items=result.total_items,
            total_pages=math.ceil(result.total_items / limit),
        )

    async def add_contact(self, body: ContactBody) -> Member:
        """Add a contact to the list.

        Returns:
            The member record that was submitted.

        Raises:
            ContactValidationError: If the email is missing.
            ProviderError: If the address is already on the list.
        """
        member = build_member(body)
        await self._provider.add_member(self._list_id, member)
        logger.info("Contact added", extra={"subscriber_hash": subscriber_hash(member.email_address)})
        return member

    async def update_contact(self, body: ContactBody) -> Member:
        """Update an existing contact, addressed by its email.

        Raises:
            ContactValidationError: If the email is missing.
            ProviderError: If the contact does not exist.
        """
        member = build_member(body)
        hash_ = subscriber_hash(member.email_address)
        await self._provider.update_member(self._list_id, hash_, member)
        logger.info("Contact updated", extra={"subscriber_hash": hash_})
        return member

    async def delete_contact(self, email: str) -> None:
        """Archive a contact by email."""
        hash_ = subscriber_hash(email)
        await self._provider.delete_member(self._list_id, hash_)
        logger.info("Contact archived", extra={"subscriber_hash": hash_})

    async def import_csv(self, content: bytes) -> BatchResult:
        """Add or update contacts from an import CSV.

        Args:
            content: Raw CSV file content.

        Returns:
            The provider's new/updated/failed partition.
        """
        members = dedupe_members(self._parser.parse_members(content))
        return await self._batch_add(members)

    async def replace_from_csv(self, content: bytes) -> BatchResult:
        """Replace the whole list with the contacts of an import CSV.

        Existing members are deleted through one provider batch, then the new
        contacts are added. The CSV is parsed first so a broken file never
        empties the list.
        """
        members = dedupe_members(self._parser.parse_members(content))

        existing = await self._provider.get_members(
            self._list_id,
            count=MAX_CONTACT_LIST,
            fields=("members.email_address",),
        )
        operations = [
            BatchOperation(
                method="DELETE",
                path=f"/lists/{self._list_id}/members/{subscriber_hash(m.email_address)}",
            )
            for m in existing.members
        ]

        if operations:
            batch = await self._provider.start_batch(operations)
            logger.info(
                "Delete batch started",
                extra={"batch_id": batch.id, "operations": len(operations)},
            )
            if self._settings.replace_wait_for_delete:
                await self._poll_batch(batch.id)
            else:
                task = asyncio.create_task(self._watch_batch(batch.id))
                _background_tasks.add(task)
                task.add_done_callback(_background_tasks.discard)
        else:
            logger.info("List already empty; no delete batch started")

        return await self._batch_add(members)

    async def export_csv(self) -> str:
        """Fetch the contact list and render it as CSV."""
        result = await self._provider.get_members(
            self._list_id,
            count=MAX_CONTACT_LIST,
            sort_field=SORT_FIELD,
            sort_dir=DEFAULT_SORT,
            fields=LIST_FIELDS,
        )
        return members_to_csv(result.members)

    async def wait_for_batch(self, batch_id: str) -> BatchStatus | None:
        """Poll a batch until it is finished or the deadline passes.

        Every non-finished status is treated the same way; hitting the
        deadline is not an error.

        Returns:
            The last status seen, or None if the deadline passed before the
            first check.
        """
        interval = self._settings.batch_poll_interval_seconds
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._settings.batch_poll_timeout_seconds
        status: BatchStatus | None = None

        while loop.time() < deadline:
            await asyncio.sleep(min(interval, max(deadline - loop.time(), 0)))
            status = await self._provider.get_batch(batch_id)
            if status.is_finished:
                logger.info(
                    "Batch finished",
                    extra={
                        "batch_id": batch_id,
                        "finished_operations": status.finished_operations,
                        "errored_operations": status.errored_operations,
                    },
                )
                return status

        logger.warning(
            "Batch still running at poll deadline",
            extra={"batch_id": batch_id, "status": status.status if status else None},
        )
        return status

    async def _poll_batch(self, batch_id: str) -> None:
        try:
            await self.wait_for_batch(batch_id)
        except ProviderError as e:
            logger.warning(
                "Batch status check failed; continuing",
                extra={"batch_id": batch_id, "error": str(e)},
            )

    async def _watch_batch(self, batch_id: str) -> None:
        try:
            await self.wait_for_batch(batch_id)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Batch watcher failed", extra={"batch_id": batch_id})

    async def _batch_add(self, members: Sequence[Member]) -> BatchResult:
        result = BatchResult()
        if not members:
            logger.info("CSV import has no rows; nothing submitted")
            return result

        for start in range(0, len(members), MAX_BATCH_MEMBERS):
            chunk = members[start:start + MAX_BATCH_MEMBERS]
            partial = await self._provider.batch_members(self._list_id, chunk, update_existing=True)
            result.new_members.extend(partial.new_members)
            result.updated_members.extend(partial.updated_members)
            result.failed_members.extend(partial.failed_members)

        logger.info(
            "CSV import completed",
            extra={
                "submitted": len(members),
                "new_count": len(result.new_members),
                "updated_count": len(result.updated_members),
                "failed_count": len(result.failed_members),
            },
        )
        return result
