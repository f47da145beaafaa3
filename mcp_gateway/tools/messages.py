"""
Gmail message tools for MCP server.

This module contains email MCP tools including:
- send_email / draft_email: Compose and send or save a message
- read_email / search_emails: Retrieve messages
- modify_email / delete_email: Change labels or delete one message
- batch_modify_emails / batch_delete_emails: Operate on many messages
"""

import json
import logging
from typing import TYPE_CHECKING, Literal

from mcp_gateway.core import MCPToolError, track_request
from mcp_gateway.core.context import GatewayContext
from mcp_gateway.core.exceptions import GatewayError
from mcp_gateway.services import gmail
from mcp_gateway.tools.common import call_gmail, get_current_user_id, require_context

if TYPE_CHECKING:
    from fastmcp import FastMCP

logger = logging.getLogger(__name__)

MimeType = Literal["text/plain", "text/html", "multipart/alternative"]


async def compose_email(
    app_ctx: GatewayContext,
    user_id: str,
    action: Literal["send", "draft"],
    to: list[str],
    subject: str,
    body: str,
    html_body: str | None = None,
    mime_type: MimeType = "text/plain",
    cc: list[str] | None = None,
    bcc: list[str] | None = None,
    thread_id: str | None = None,
    in_reply_to: str | None = None,
) -> str:
    """Send or draft a message for a user and describe the result."""
    raw = gmail.build_raw_message(
        to=to,
        subject=subject,
        body=body,
        html_body=html_body,
        mime_type=mime_type,
        cc=cc,
        bcc=bcc,
        in_reply_to=in_reply_to,
    )
    recipients = ", ".join(to)
    if action == "send":
        result = await call_gmail(app_ctx, user_id, gmail.send_email, raw, thread_id)
        return f"Email sent to {recipients} successfully! Message ID: {result.get('id')}"

    result = await call_gmail(app_ctx, user_id, gmail.create_draft, raw, thread_id)
    return f"Draft created for {recipients}. Draft ID: {result.get('id')}"


async def modify_labels(
    app_ctx: GatewayContext,
    user_id: str,
    message_id: str,
    label_ids: list[str] | None = None,
    add_label_ids: list[str] | None = None,
    remove_label_ids: list[str] | None = None,
) -> str:
    # label_ids is an alias for add_label_ids
    add = list(dict.fromkeys((add_label_ids or []) + (label_ids or [])))
    await call_gmail(app_ctx, user_id, gmail.modify_email, message_id, add or None, remove_label_ids)
    return f"Email {message_id} labels updated successfully"


def register_email_tools(mcp: "FastMCP") -> None:
    """
    Register Gmail message MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("send_email")
    async def send_email(
        to: list[str],
        subject: str,
        body: str,
        html_body: str | None = None,
        mime_type: MimeType = "text/plain",
        cc: list[str] | None = None,
        bcc: list[str] | None = None,
        thread_id: str | None = None,
        in_reply_to: str | None = None,
    ) -> str:
        """
        Send an email from the caller's Gmail account.

        Args:
            to: Recipient email addresses
            subject: Email subject
            body: Plain text body (also the fallback when html_body is given)
            html_body: Optional HTML body
            mime_type: "text/plain", "text/html" or "multipart/alternative"
            cc: CC recipients
            bcc: BCC recipients
            thread_id: Thread to reply in
            in_reply_to: Message-ID being replied to

        Returns:
            Confirmation with the sent message ID
        """
        try:
            return await compose_email(
                require_context(), get_current_user_id(), "send",
                to, subject, body, html_body, mime_type, cc, bcc, thread_id, in_reply_to,
            )
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("draft_email")
    async def draft_email(
        to: list[str],
        subject: str,
        body: str,
        html_body: str | None = None,
        mime_type: MimeType = "text/plain",
        cc: list[str] | None = None,
        bcc: list[str] | None = None,
        thread_id: str | None = None,
        in_reply_to: str | None = None,
    ) -> str:
        """
        Save an email as a draft in the caller's Gmail account.

        Takes the same arguments as send_email.

        Returns:
            Confirmation with the draft ID
        """
        try:
            return await compose_email(
                require_context(), get_current_user_id(), "draft",
                to, subject, body, html_body, mime_type, cc, bcc, thread_id, in_reply_to,
            )
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("read_email")
    async def read_email(message_id: str) -> str:
        """
        Read one email by ID.

        Args:
            message_id: Gmail message ID

        Returns:
            JSON with headers, labels and body
        """
        try:
            message = await call_gmail(
                require_context(), get_current_user_id(), gmail.read_email, message_id
            )
            return json.dumps(message, indent=2)
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("search_emails")
    async def search_emails(query: str, max_results: int = 10) -> str:
        """
        Search emails using Gmail search syntax.

        Args:
            query: Gmail query (e.g., 'from:alice is:unread')
            max_results: Maximum number of results to return (default: 10)

        Returns:
            JSON list of matching messages with id, subject, from and date
        """
        try:
            results = await call_gmail(
                require_context(), get_current_user_id(), gmail.search_emails, query, max_results
            )
            return json.dumps(results, indent=2)
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("modify_email")
    async def modify_email(
        message_id: str,
        label_ids: list[str] | None = None,
        add_label_ids: list[str] | None = None,
        remove_label_ids: list[str] | None = None,
    ) -> str:
        """
        Add or remove labels on an email (e.g., move to a folder, mark read).

        Args:
            message_id: Gmail message ID
            label_ids: Labels to add (alias of add_label_ids)
            add_label_ids: Labels to add
            remove_label_ids: Labels to remove

        Returns:
            Confirmation message
        """
        try:
            return await modify_labels(
                require_context(), get_current_user_id(),
                message_id, label_ids, add_label_ids, remove_label_ids,
            )
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("delete_email")
    async def delete_email(message_id: str) -> str:
        """
        Permanently delete an email.

        Args:
            message_id: Gmail message ID

        Returns:
            Confirmation message
        """
        try:
            await call_gmail(require_context(), get_current_user_id(), gmail.delete_email, message_id)
            return f"Email {message_id} deleted successfully"
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("batch_modify_emails")
    async def batch_modify_emails(
        message_ids: list[str],
        add_label_ids: list[str] | None = None,
        remove_label_ids: list[str] | None = None,
        batch_size: int | None = None,
    ) -> str:
        """
        Add or remove labels on many emails at once.

        Args:
            message_ids: Gmail message IDs
            add_label_ids: Labels to add
            remove_label_ids: Labels to remove
            batch_size: Messages per request (default from GMAIL_BATCH_SIZE, 50)

        Returns:
            JSON with succeeded IDs and failed chunks
        """
        try:
            app_ctx = require_context()
            result = await call_gmail(
                app_ctx, get_current_user_id(), gmail.batch_modify_emails,
                message_ids, add_label_ids, remove_label_ids,
                batch_size or app_ctx.settings.gmail_batch_size,
            )
            return json.dumps(result, indent=2)
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("batch_delete_emails")
    async def batch_delete_emails(message_ids: list[str], batch_size: int | None = None) -> str:
        """
        Permanently delete many emails at once.

        Args:
            message_ids: Gmail message IDs
            batch_size: Messages per request (default from GMAIL_BATCH_SIZE, 50)

        Returns:
            JSON with succeeded IDs and failed chunks
        """
        try:
            app_ctx = require_context()
            result = await call_gmail(
                app_ctx, get_current_user_id(), gmail.batch_delete_emails,
                message_ids, batch_size or app_ctx.settings.gmail_batch_size,
            )
            return json.dumps(result, indent=2)
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e
