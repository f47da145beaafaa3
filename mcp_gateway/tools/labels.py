"""
Gmail label tools for MCP server.

- list_email_labels, create_label, update_label, delete_label, get_or_create_label
"""

import json
import logging
from typing import TYPE_CHECKING, Literal

from mcp_gateway.core import MCPToolError, track_request
from mcp_gateway.core.exceptions import GatewayError
from mcp_gateway.services import gmail
from mcp_gateway.tools.common import call_gmail, get_current_user_id, require_context

if TYPE_CHECKING:
    from fastmcp import FastMCP

logger = logging.getLogger(__name__)

MessageListVisibility = Literal["show", "hide"]
LabelListVisibility = Literal["labelShow", "labelShowIfUnread", "labelHide"]


def label_update_body(
    name: str | None,
    message_list_visibility: str | None,
    label_list_visibility: str | None,
) -> dict:
    body = {}
    if name:
        body["name"] = name
    if message_list_visibility:
        body["messageListVisibility"] = message_list_visibility
    if label_list_visibility:
        body["labelListVisibility"] = label_list_visibility
    return body


def register_label_tools(mcp: "FastMCP") -> None:
    """
    Register Gmail label MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("list_email_labels")
    async def list_email_labels() -> str:
        """
        List all Gmail labels, split into system and user labels.

        Returns:
            JSON with all/system/user labels and counts
        """
        try:
            labels = await call_gmail(require_context(), get_current_user_id(), gmail.list_labels)
            return json.dumps(labels, indent=2)
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("create_label")
    async def create_label(
        name: str,
        message_list_visibility: MessageListVisibility | None = None,
        label_list_visibility: LabelListVisibility | None = None,
    ) -> str:
        """
        Create a new Gmail label.

        Args:
            name: Label name
            message_list_visibility: "show" (default) or "hide"
            label_list_visibility: "labelShow" (default), "labelShowIfUnread" or "labelHide"

        Returns:
            JSON of the created label
        """
        try:
            label = await call_gmail(
                require_context(), get_current_user_id(), gmail.create_label,
                name, message_list_visibility, label_list_visibility,
            )
            return json.dumps(label, indent=2)
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("update_label")
    async def update_label(
        label_id: str,
        name: str | None = None,
        message_list_visibility: MessageListVisibility | None = None,
        label_list_visibility: LabelListVisibility | None = None,
    ) -> str:
        """
        Update a Gmail label's name or visibility.

        Args:
            label_id: Label ID
            name: New name
            message_list_visibility: "show" or "hide"
            label_list_visibility: "labelShow", "labelShowIfUnread" or "labelHide"

        Returns:
            JSON of the updated label
        """
        updates = label_update_body(name, message_list_visibility, label_list_visibility)
        if not updates:
            raise MCPToolError("Nothing to update: provide name or a visibility setting")
        try:
            label = await call_gmail(
                require_context(), get_current_user_id(), gmail.update_label, label_id, updates
            )
            return json.dumps(label, indent=2)
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("delete_label")
    async def delete_label(label_id: str) -> str:
        """
        Delete a user-created Gmail label. System labels cannot be deleted.

        Args:
            label_id: Label ID

        Returns:
            Confirmation message
        """
        try:
            await call_gmail(require_context(), get_current_user_id(), gmail.delete_label, label_id)
            return f'Label "{label_id}" deleted successfully'
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e

    @mcp.tool()
    @track_request("get_or_create_label")
    async def get_or_create_label(
        name: str,
        message_list_visibility: MessageListVisibility | None = None,
        label_list_visibility: LabelListVisibility | None = None,
    ) -> str:
        """
        Find a label by name (case-insensitive) or create it.

        Returns:
            JSON of the existing or created label
        """
        try:
            label = await call_gmail(
                require_context(), get_current_user_id(), gmail.get_or_create_label,
                name, message_list_visibility, label_list_visibility,
            )
            return json.dumps(label, indent=2)
        except MCPToolError:
            raise
        except GatewayError as e:
            raise MCPToolError(str(e)) from e
