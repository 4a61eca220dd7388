"""
Tests for the Mailchimp HTTP client, driven through httpx.MockTransport.
"""

import base64
import json
from typing import Callable

import httpx
import pytest

from contacts_api.contacts.schemas import BatchOperation, Member
from contacts_api.mailchimp.client import MailchimpClient
from contacts_api.mailchimp.interface import ProviderError, problem_message
from contacts_api.shared.hashing import subscriber_hash

Handler = Callable[[httpx.Request], httpx.Response]


def make_client(handler: Handler) -> MailchimpClient:
    return MailchimpClient(
        api_key="secret-us1",
        server="us1",
        transport=httpx.MockTransport(handler),
    )


class TestProblemMessage:
    def test_prefers_detail(self) -> None:
        assert problem_message({"title": "Member Exists", "detail": "a@x.com is already a list member."}) == (
            "a@x.com is already a list member."
        )

    def test_falls_back_to_title_then_text(self) -> None:
        assert problem_message({"title": "Resource Not Found"}) == "Resource Not Found"
        assert problem_message({}, "Bad gateway") == "Bad gateway"
        assert problem_message(None) == "Failed to fetch data"


class TestMailchimpClient:
    def test_base_url_uses_server_prefix(self) -> None:
        client = MailchimpClient(api_key="k", server="us21")
        assert client.base_url == "https://us21.api.mailchimp.com/3.0"

    @pytest.mark.asyncio
    async def test_ping_uses_basic_auth(self) -> None:
        seen: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"health_status": "Everything's Chimpy!"})

        client = make_client(handler)
        try:
            result = await client.ping()
        finally:
            await client.close()

        assert result == {"health_status": "Everything's Chimpy!"}
        assert seen["url"] == "https://us1.api.mailchimp.com/3.0/ping"
        expected = base64.b64encode(b"anystring:secret-us1").decode()
        assert seen["auth"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_get_members_query_parameters(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(
                200,
                json={
                    "members": [
                        {"id": "h1", "email_address": "a@x.com", "merge_fields": {"FNAME": "A", "BIRTHDAY": ""}},
                    ],
                    "total_items": 11,
                },
            )

        client = make_client(handler)
        page = await client.get_members(
            "list1",
            count=10,
            offset=10,
            sort_field="last_changed",
            sort_dir="DESC",
            fields=["members.id", "total_items"],
        )
        await client.close()

        params = captured[0].url.params
        assert captured[0].url.path == "/3.0/lists/list1/members"
        assert params["count"] == "10"
        assert params["offset"] == "10"
        assert params["sort_field"] == "last_changed"
        assert params["sort_dir"] == "DESC"
        assert params["fields"] == "members.id,total_items"
        assert page.total_items == 11
        assert page.members[0].merge_fields.FNAME == "A"
        assert page.members[0].merge_fields.model_dump()["BIRTHDAY"] == ""

    @pytest.mark.asyncio
    async def test_add_member_sends_sanitized_payload(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={**json.loads(request.content), "id": "h1"})

        client = make_client(handler)
        member = Member(email_address="a@x.com", status="subscribed", merge_fields={"FNAME": "A"})
        await client.add_member("list1", member)
        await client.close()

        request = captured[0]
        assert request.method == "POST"
        assert request.url.params["skip_merge_validation"] == "true"
        assert json.loads(request.content) == {
            "email_address": "a@x.com",
            "status": "subscribed",
            "merge_fields": {"FNAME": "A"},
        }

    @pytest.mark.asyncio
    async def test_update_member_uses_patch_on_hash(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"email_address": "a@x.com"})

        client = make_client(handler)
        hash_ = subscriber_hash("a@x.com")
        await client.update_member("list1", hash_, Member(email_address="a@x.com"))
        await client.close()

        assert captured[0].method == "PATCH"
        assert captured[0].url.path == f"/3.0/lists/list1/members/{hash_}"

    @pytest.mark.asyncio
    async def test_delete_member_no_content(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "DELETE"
            return httpx.Response(204)

        client = make_client(handler)
        assert await client.delete_member("list1", subscriber_hash("a@x.com")) is None
        await client.close()

    @pytest.mark.asyncio
    async def test_error_detail_becomes_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404,
                json={
                    "type": "https://mailchimp.com/developer/marketing/docs/errors/",
                    "title": "Resource Not Found",
                    "status": 404,
                    "detail": "The requested resource could not be found.",
                },
            )

        client = make_client(handler)
        with pytest.raises(ProviderError) as exc_info:
            await client.delete_member("list1", subscriber_hash("missing@x.com"))
        await client.close()

        assert str(exc_info.value) == "The requested resource could not be found."
        assert exc_info.value.upstream_status == 404
        assert exc_info.value.status_code == 500
        assert exc_info.value.problem["title"] == "Resource Not Found"

    @pytest.mark.asyncio
    async def test_non_json_error_uses_response_text(self) -> None:
        client = make_client(lambda request: httpx.Response(502, text="Bad gateway"))

        with pytest.raises(ProviderError) as exc_info:
            await client.ping()
        await client.close()

        assert str(exc_info.value) == "Bad gateway"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(ProviderError) as exc_info:
            await client.ping()
        await client.close()

        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_batch_members_partitions(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(
                200,
                json={
                    "new_members": [{"email_address": "new@x.com"}],
                    "updated_members": [{"email_address": "old@x.com"}],
                    "errors": [
                        {
                            "email_address": "",
                            "error": "Please provide a valid email address.",
                            "error_code": "ERROR_GENERIC",
                            "field": "email_address",
                            "field_message": "Please provide a valid email address.",
                        }
                    ],
                    "total_created": 1,
                    "total_updated": 1,
                    "error_count": 1,
                },
            )

        client = make_client(handler)
        result = await client.batch_members(
            "list1",
            [Member(email_address="new@x.com"), Member(email_address="old@x.com"), Member(email_address="")],
        )
        await client.close()

        body = json.loads(captured[0].content)
        assert captured[0].url.path == "/3.0/lists/list1"
        assert body["update_existing"] is True
        assert len(body["members"]) == 3
        assert [m.email_address for m in result.new_members] == ["new@x.com"]
        assert [m.email_address for m in result.updated_members] == ["old@x.com"]
        assert result.failed_members[0].field == "email_address"

    @pytest.mark.asyncio
    async def test_start_and_get_batch(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            if request.method == "POST":
                return httpx.Response(200, json={"id": "b1", "status": "pending", "total_operations": 1})
            return httpx.Response(200, json={"id": "b1", "status": "finished", "finished_operations": 1})

        client = make_client(handler)
        started = await client.start_batch(
            [BatchOperation(method="DELETE", path="/lists/list1/members/abc")]
        )
        status = await client.get_batch(started.id)
        await client.close()

        assert json.loads(captured[0].content) == {
            "operations": [{"method": "DELETE", "path": "/lists/list1/members/abc"}]
        }
        assert captured[1].url.path == "/3.0/batches/b1"
        assert started.status == "pending"
        assert status.is_finished
