"""Chunked Gmail batch operations."""

import logging
from typing import Any, Optional

from googleapiclient.errors import HttpError

from mcp_gateway.core.constants import GMAIL_BATCH_SIZE_DEFAULT, GMAIL_USER_ID

logger = logging.getLogger(__name__)


def _chunks(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def batch_modify_emails(
    service: Any,
    message_ids: list[str],
    add_label_ids: Optional[list[str]] = None,
    remove_label_ids: Optional[list[str]] = None,
    batch_size: int = GMAIL_BATCH_SIZE_DEFAULT,
) -> dict:
    """
    Apply label changes to many messages, one batchModify call per chunk.

    A failed chunk is recorded and the remaining chunks still run.

    Returns:
        {"successes": [...ids], "failures": [{"message_ids", "error"}]}
    """
    body: dict[str, list[str]] = {}
    if add_label_ids:
        body["addLabelIds"] = add_label_ids
    if remove_label_ids:
        body["removeLabelIds"] = remove_label_ids

    successes: list[str] = []
    failures: list[dict] = []
    for chunk in _chunks(message_ids, batch_size):
        try:
            service.users().messages().batchModify(
                userId=GMAIL_USER_ID, body={"ids": chunk, **body}
            ).execute()
            successes.extend(chunk)
        except HttpError as e:
            logger.warning("batchModify failed for %d messages: %s", len(chunk), e)
            failures.append({"message_ids": chunk, "error": str(e)})

    return {"successes": successes, "failures": failures}


def batch_delete_emails(
    service: Any,
    message_ids: list[str],
    batch_size: int = GMAIL_BATCH_SIZE_DEFAULT,
) -> dict:
    """Permanently delete many messages, one batchDelete call per chunk."""
    successes: list[str] = []
    failures: list[dict] = []
    for chunk in _chunks(message_ids, batch_size):
        try:
            service.users().messages().batchDelete(
                userId=GMAIL_USER_ID, body={"ids": chunk}
            ).execute()
            successes.extend(chunk)
        except HttpError as e:
            logger.warning("batchDelete failed for %d messages: %s", len(chunk), e)
            failures.append({"message_ids": chunk, "error": str(e)})

    return {"successes": successes, "failures": failures}
