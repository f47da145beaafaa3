"""
MCP tool tests.

Tools are registered on a real FastMCP instance and invoked through the
registered functions with a test application context. The caller identity
is injected by patching the HTTP request lookup.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastmcp import FastMCP

from mcp_gateway.auth.storage import StoredGoogleAccount, StoredUser
from mcp_gateway.config import Settings
from mcp_gateway.core import MCPToolError
from mcp_gateway.core.context import create_gateway_context, set_app_context
from mcp_gateway.core.exceptions import GmailAPIError, GoogleAuthError
from mcp_gateway.tools import common, register_tools

EXPECTED_TOOLS = {
    "add_numbers",
    "validate",
    "google_auth_link",
    "check_google_auth",
    "send_email",
    "draft_email",
    "read_email",
    "search_emails",
    "modify_email",
    "delete_email",
    "batch_modify_emails",
    "batch_delete_emails",
    "list_email_labels",
    "create_label",
    "update_label",
    "delete_label",
    "get_or_create_label",
}


@pytest.fixture
def app_ctx(tmp_path):
    settings = Settings(
        _env_file=None,
        base_url="https://gw.example.com",
        database_path=str(tmp_path / "tools.db"),
        dev_phone_number="+15550100",
        gmail_batch_size=2,
    )
    context = create_gateway_context(settings)
    context.store._initialize()
    context.gmail = MagicMock()
    context.gmail.get_service = AsyncMock(return_value=MagicMock())
    set_app_context(context)
    yield context
    set_app_context(None)


@pytest.fixture
def caller(monkeypatch):
    """Authenticate tool calls as the given user id."""

    def _as(user_id="u1"):
        request = SimpleNamespace(state=SimpleNamespace(user_id=user_id))
        monkeypatch.setattr(common, "get_http_request", lambda: request)

    _as()
    return _as


@pytest.fixture
async def tools():
    mcp = FastMCP("Test Gateway")
    register_tools(mcp)
    registered = await mcp.get_tools()
    return {name: tool.fn for name, tool in registered.items()}


def gmail_service(app_ctx):
    return app_ctx.gmail.get_service.return_value


class TestRegistration:
    @pytest.mark.asyncio
    async def test_all_tools_registered(self, tools):
        assert set(tools) == EXPECTED_TOOLS


class TestBasicTools:
    @pytest.mark.asyncio
    async def test_add_numbers(self, tools, app_ctx):
        assert await tools["add_numbers"](a=2, b=3) == "The sum of 2 and 3 is 5"

    @pytest.mark.asyncio
    async def test_validate(self, tools, app_ctx):
        assert await tools["validate"]() == "+15550100"

    @pytest.mark.asyncio
    async def test_validate_not_set(self, tools, app_ctx):
        app_ctx.settings.dev_phone_number = None
        assert await tools["validate"]() == "not_set"


class TestGoogleTools:
    @pytest.mark.asyncio
    async def test_auth_link(self, tools, app_ctx):
        assert await tools["google_auth_link"]() == (
            "Sign in with Google: https://gw.example.com/auth/google/login"
        )

    @pytest.mark.asyncio
    async def test_check_not_logged_in(self, tools, app_ctx, caller):
        assert await tools["check_google_auth"]() == "User is not logged in with Google."

    @pytest.mark.asyncio
    async def test_check_logged_in(self, tools, app_ctx, caller):
        await app_ctx.store.upsert_user(StoredUser(id="u1", email="alice@example.com"))
        await app_ctx.store.save_google_account(StoredGoogleAccount(user_id="u1", access_token="at"))

        assert await tools["check_google_auth"]() == "User is logged in as alice@example.com"

    @pytest.mark.asyncio
    async def test_requires_authenticated_request(self, tools, app_ctx, caller):
        caller(None)
        with pytest.raises(MCPToolError, match="Unauthorized"):
            await tools["check_google_auth"]()


class TestEmailTools:
    @pytest.mark.asyncio
    async def test_send_email(self, tools, app_ctx, caller):
        gmail_service(app_ctx).users().messages().send().execute.return_value = {"id": "m1"}

        result = await tools["send_email"](to=["bob@example.com"], subject="Hi", body="Hello")

        assert result == "Email sent to bob@example.com successfully! Message ID: m1"
        app_ctx.gmail.get_service.assert_awaited_with("u1")

    @pytest.mark.asyncio
    async def test_draft_email(self, tools, app_ctx, caller):
        gmail_service(app_ctx).users().drafts().create().execute.return_value = {"id": "d1"}

        result = await tools["draft_email"](to=["bob@example.com"], subject="Hi", body="Hello")

        assert result == "Draft created for bob@example.com. Draft ID: d1"

    @pytest.mark.asyncio
    async def test_google_auth_errors_become_tool_errors(self, tools, app_ctx, caller):
        app_ctx.gmail.get_service.side_effect = GoogleAuthError("Google access token not found for user.")

        with pytest.raises(MCPToolError, match="Google access token not found for user."):
            await tools["send_email"](to=["bob@example.com"], subject="Hi", body="Hello")

    @pytest.mark.asyncio
    async def test_search_returns_json(self, tools, app_ctx, caller):
        service = gmail_service(app_ctx)
        service.users().messages().list().execute.return_value = {"messages": [{"id": "m1"}]}
        service.users().messages().get().execute.return_value = {"payload": {"headers": []}}

        result = json.loads(await tools["search_emails"](query="is:unread"))

        assert result[0]["id"] == "m1"

    @pytest.mark.asyncio
    async def test_modify_merges_label_alias(self, tools, app_ctx, caller):
        service = gmail_service(app_ctx)

        await tools["modify_email"](message_id="m1", label_ids=["A"], add_label_ids=["B", "A"])

        service.users().messages().modify.assert_called_with(
            userId="me", id="m1", body={"addLabelIds": ["B", "A"]}
        )

    @pytest.mark.asyncio
    async def test_delete_email_api_error(self, tools, app_ctx, caller):
        gmail_service(app_ctx).users().messages().delete().execute.side_effect = GmailAPIError("gone", 404)

        with pytest.raises(MCPToolError, match="gone"):
            await tools["delete_email"](message_id="m1")

    @pytest.mark.asyncio
    async def test_batch_uses_configured_size(self, tools, app_ctx, caller):
        service = gmail_service(app_ctx)

        result = json.loads(await tools["batch_delete_emails"](message_ids=["a", "b", "c"]))

        assert result["successes"] == ["a", "b", "c"]
        batches = [c.kwargs["body"]["ids"] for c in service.users().messages().batchDelete.call_args_list]
        assert batches == [["a", "b"], ["c"]]


class TestLabelTools:
    @pytest.mark.asyncio
    async def test_list_labels(self, tools, app_ctx, caller):
        gmail_service(app_ctx).users().labels().list().execute.return_value = {
            "labels": [{"id": "INBOX", "name": "INBOX", "type": "system"}]
        }

        result = json.loads(await tools["list_email_labels"]())

        assert result["count"] == {"total": 1, "system": 1, "user": 0}

    @pytest.mark.asyncio
    async def test_update_requires_changes(self, tools, app_ctx, caller):
        with pytest.raises(MCPToolError, match="Nothing to update"):
            await tools["update_label"](label_id="Label_1")

    @pytest.mark.asyncio
    async def test_delete_system_label_refused(self, tools, app_ctx, caller):
        gmail_service(app_ctx).users().labels().get().execute.return_value = {"id": "INBOX", "type": "system"}

        with pytest.raises(MCPToolError, match='Cannot delete system label with ID "INBOX".'):
            await tools["delete_label"](label_id="INBOX")


class TestWithoutContext:
    @pytest.mark.asyncio
    async def test_missing_context(self, tools, caller):
        set_app_context(None)
        with pytest.raises(MCPToolError, match="not initialized"):
            await tools["validate"]()
