"""
Mailchimp Marketing API (v3) provider.
"""

from typing import Any, Sequence

import httpx

from contacts_api.contacts.mapper import member_payload
from contacts_api.contacts.schemas import (
    BatchMemberError,
    BatchOperation,
    BatchResult,
    BatchStatus,
    Member,
    MemberPage,
)
from contacts_api.mailchimp.interface import (
    MailingListProvider,
    ProviderError,
    problem_message,
)
from contacts_api.shared.logging import correlation_id_var, get_logger

logger = get_logger(__name__)


class MailchimpClient(MailingListProvider):
    """Mailchimp Marketing API client.

    Authenticates with HTTP basic auth (any user name, the API key as
    password) against ``https://{server}.api.mailchimp.com/3.0``.
    """

    def __init__(
        self,
        api_key: str,
        server: str,
        timeout: float = 30.0,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Mailchimp client.

        Args:
            api_key: Mailchimp API key.
            server: Data center prefix (e.g. ``us21``).
            timeout: HTTP request timeout in seconds.
            base_url: Override of the API root, mainly for tests.
            transport: Optional httpx transport, mainly for tests.
        """
        self._api_key = api_key
        self._server = server
        self._base_url = base_url or f"https://{server}.api.mailchimp.com/3.0"
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=("anystring", self._api_key),
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            ProviderError: On transport failures and non-2xx responses.
        """
        client = self._get_client()
        headers: dict[str, str] = {}
        correlation_id = correlation_id_var.get()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id

        try:
            response = await client.request(method, path, params=params, json=json, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            problem: dict[str, Any] = {}
            try:
                body = e.response.json()
                if isinstance(body, dict):
                    problem = body
            except ValueError:
                pass

            message = problem_message(problem, e.response.text)
            logger.error(
                "Mailchimp request failed",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": e.response.status_code,
                    "error": message,
                },
            )
            raise ProviderError(
                message=message,
                upstream_status=e.response.status_code,
                problem=problem,
            ) from e
        except httpx.RequestError as e:
            logger.error(
                "Mailchimp request error",
                extra={"method": method, "path": path, "error": str(e)},
            )
            raise ProviderError(message=f"Mailchimp request failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def ping(self) -> dict[str, Any]:
        return await self._request("GET", "/ping")

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
        params: dict[str, Any] = {"count": count, "offset": offset}
        if sort_field:
            params["sort_field"] = sort_field
        if sort_dir:
            params["sort_dir"] = sort_dir
        if fields:
            params["fields"] = ",".join(fields)

        data = await self._request("GET", f"/lists/{list_id}/members", params=params) or {}
        return MemberPage(
            members=data.get("members") or [],
            total_items=data.get("total_items") or 0,
        )

    async def add_member(self, list_id: str, member: Member) -> Member:
        data = await self._request(
            "POST",
            f"/lists/{list_id}/members",
            params={"skip_merge_validation": "true"},
            json=member_payload(member),
        )
        return Member.model_validate(data)

    async def update_member(self, list_id: str, subscriber_hash: str, member: Member) -> Member:
        data = await self._request(
            "PATCH",
            f"/lists/{list_id}/members/{subscriber_hash}",
            params={"skip_merge_validation": "true"},
            json=member_payload(member),
        )
        return Member.model_validate(data)

    async def delete_member(self, list_id: str, subscriber_hash: str) -> None:
        await self._request("DELETE", f"/lists/{list_id}/members/{subscriber_hash}")

    async def batch_members(
        self,
        list_id: str,
        members: Sequence[Member],
        update_existing: bool = True,
    ) -> BatchResult:
        data = await self._request(
            "POST",
            f"/lists/{list_id}",
            json={
                "members": [member_payload(m) for m in members],
                "update_existing": update_existing,
            },
        ) or {}

        logger.info(
            "Mailchimp batch subscribe completed",
            extra={
                "list_id": list_id,
                "submitted": len(members),
                "new_count": data.get("total_created", len(data.get("new_members") or [])),
                "updated_count": data.get("total_updated", len(data.get("updated_members") or [])),
                "error_count": data.get("error_count", len(data.get("errors") or [])),
            },
        )
        return BatchResult(
            new_members=data.get("new_members") or [],
            updated_members=data.get("updated_members") or [],
            failed_members=[BatchMemberError.model_validate(e) for e in data.get("errors") or []],
        )

    async def start_batch(self, operations: Sequence[BatchOperation]) -> BatchStatus:
        data = await self._request(
            "POST",
            "/batches",
            json={"operations": [op.model_dump(exclude_none=True) for op in operations]},
        )
        return BatchStatus.model_validate(data)

    async def get_batch(self, batch_id: str) -> BatchStatus:
        data = await self._request("GET", f"/batches/{batch_id}")
        return BatchStatus.model_validate(data)
