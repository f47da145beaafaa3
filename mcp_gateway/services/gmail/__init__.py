"""Gmail API access for gateway tools."""

from .batch import batch_delete_emails, batch_modify_emails
from .client import GmailClientFactory
from .labels import (
    create_label,
    delete_label,
    find_label_by_name,
    get_or_create_label,
    list_labels,
    update_label,
)
from .messages import (
    build_raw_message,
    create_draft,
    delete_email,
    modify_email,
    read_email,
    search_emails,
    send_email,
)

__all__ = [
    "GmailClientFactory",
    "batch_delete_emails",
    "batch_modify_emails",
    "build_raw_message",
    "create_draft",
    "create_label",
    "delete_email",
    "delete_label",
    "find_label_by_name",
    "get_or_create_label",
    "list_labels",
    "modify_email",
    "read_email",
    "search_emails",
    "send_email",
    "update_label",
]
