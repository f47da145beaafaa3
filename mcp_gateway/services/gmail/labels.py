"""Gmail label management."""

import logging
from typing import Any, Optional

from googleapiclient.errors import HttpError

from mcp_gateway.core.constants import GMAIL_USER_ID
from mcp_gateway.core.exceptions import GmailAPIError
from mcp_gateway.services.gmail.messages import http_error_to_gmail_error

logger = logging.getLogger(__name__)


def list_labels(service: Any) -> dict:
    """
    List all labels, split into system and user labels.

    Returns:
        {"all", "system", "user", "count": {"total", "system", "user"}}
    """
    try:
        response = service.users().labels().list(userId=GMAIL_USER_ID).execute()
    except HttpError as e:
        raise http_error_to_gmail_error(e, "list labels") from e

    labels = response.get("labels", [])
    system = [label for label in labels if label.get("type") == "system"]
    user = [label for label in labels if label.get("type") == "user"]
    return {
        "all": labels,
        "system": system,
        "user": user,
        "count": {"total": len(labels), "system": len(system), "user": len(user)},
    }


def create_label(
    service: Any,
    name: str,
    message_list_visibility: Optional[str] = None,
    label_list_visibility: Optional[str] = None,
) -> dict:
    """Create a user label. Visibility defaults to shown."""
    body = {
        "name": name,
        "messageListVisibility": message_list_visibility or "show",
        "labelListVisibility": label_list_visibility or "labelShow",
    }
    try:
        label = service.users().labels().create(userId=GMAIL_USER_ID, body=body).execute()
    except HttpError as e:
        if getattr(e.resp, "status", None) == 409 or "already exists" in str(e).lower():
            raise GmailAPIError(
                f'Label "{name}" already exists. Please use a different name.', status=409
            ) from e
        raise http_error_to_gmail_error(e, f'create label "{name}"') from e
    logger.info("Created Gmail label %s (%s)", name, label.get("id"))
    return label


def update_label(service: Any, label_id: str, updates: dict) -> dict:
    """Patch a label's name or visibility after confirming it exists."""
    try:
        service.users().labels().get(userId=GMAIL_USER_ID, id=label_id).execute()
    except HttpError as e:
        if getattr(e.resp, "status", None) == 404:
            raise GmailAPIError(f'Label with ID "{label_id}" not found.', status=404) from e
        raise http_error_to_gmail_error(e, f"update label {label_id}") from e

    try:
        return (
            service.users()
            .labels()
            .update(userId=GMAIL_USER_ID, id=label_id, body=updates)
            .execute()
        )
    except HttpError as e:
        raise http_error_to_gmail_error(e, f"update label {label_id}") from e


def delete_label(service: Any, label_id: str) -> None:
    """Delete a user label. System labels cannot be deleted."""
    try:
        label = service.users().labels().get(userId=GMAIL_USER_ID, id=label_id).execute()
    except HttpError as e:
        if getattr(e.resp, "status", None) == 404:
            raise GmailAPIError(f'Label with ID "{label_id}" not found.', status=404) from e
        raise http_error_to_gmail_error(e, f"delete label {label_id}") from e

    if label.get("type") == "system":
        raise GmailAPIError(f'Cannot delete system label with ID "{label_id}".', status=400)

    try:
        service.users().labels().delete(userId=GMAIL_USER_ID, id=label_id).execute()
    except HttpError as e:
        raise http_error_to_gmail_error(e, f"delete label {label_id}") from e
    logger.info("Deleted Gmail label %s", label_id)


def find_label_by_name(service: Any, name: str) -> Optional[dict]:
    """Case-insensitive lookup of a label by name."""
    wanted = name.lower()
    for label in list_labels(service)["all"]:
        if label.get("name", "").lower() == wanted:
            return label
    return None


def get_or_create_label(
    service: Any,
    name: str,
    message_list_visibility: Optional[str] = None,
    label_list_visibility: Optional[str] = None,
) -> dict:
    existing = find_label_by_name(service, name)
    if existing:
        return existing
    return create_label(service, name, message_list_visibility, label_list_visibility)
