"""
Gmail message operations.

Synchronous helpers over a google-api-python-client Gmail service. Callers in
async code run them through ``asyncio.to_thread``.
"""

import base64
import logging
from email.message import EmailMessage
from typing import Any, Optional

from googleapiclient.errors import HttpError

from mcp_gateway.core.constants import GMAIL_USER_ID
from mcp_gateway.core.exceptions import GmailAPIError, InputValidationError

logger = logging.getLogger(__name__)


def http_error_to_gmail_error(error: HttpError, action: str) -> GmailAPIError:
    """Wrap a googleapiclient HttpError with its status code."""
    status = getattr(error.resp, "status", None)
    reason = error.reason if hasattr(error, "reason") else str(error)
    return GmailAPIError(f"Failed to {action}: {reason}", status=int(status) if status else None)


def build_raw_message(
    to: list[str],
    subject: str,
    body: str,
    html_body: Optional[str] = None,
    mime_type: str = "text/plain",
    cc: Optional[list[str]] = None,
    bcc: Optional[list[str]] = None,
    in_reply_to: Optional[str] = None,
) -> str:
    """
    Build a base64url encoded RFC 2822 message for the Gmail API.

    Args:
        to: Recipient addresses
        subject: Subject line
        body: Plain text body
        html_body: Optional HTML body
        mime_type: "text/plain", "text/html" or "multipart/alternative"
        cc: CC recipients
        bcc: BCC recipients
        in_reply_to: Message-ID being replied to

    Returns:
        Encoded message suitable for the ``raw`` field
    """
    if not to:
        raise InputValidationError("At least one recipient is required")

    message = EmailMessage()
    message["To"] = ", ".join(to)
    if cc:
        message["Cc"] = ", ".join(cc)
    if bcc:
        message["Bcc"] = ", ".join(bcc)
    message["Subject"] = subject
    if in_reply_to:
        message["In-Reply-To"] = in_reply_to
        message["References"] = in_reply_to

    if mime_type == "multipart/alternative" and html_body:
        message.set_content(body)
        message.add_alternative(html_body, subtype="html")
    elif html_body or mime_type == "text/html":
        message.set_content(html_body or body, subtype="html")
    else:
        message.set_content(body)

    return base64.urlsafe_b64encode(message.as_bytes()).decode()


def _message_body(raw: str, thread_id: Optional[str]) -> dict:
    body: dict[str, Any] = {"raw": raw}
    if thread_id:
        body["threadId"] = thread_id
    return body


def send_email(service: Any, raw: str, thread_id: Optional[str] = None) -> dict:
    """Send an encoded message. Returns the Gmail message resource."""
    try:
        result = (
            service.users()
            .messages()
            .send(userId=GMAIL_USER_ID, body=_message_body(raw, thread_id))
            .execute()
        )
    except HttpError as e:
        raise http_error_to_gmail_error(e, "send email") from e
    logger.info("Sent Gmail message %s", result.get("id"))
    return result


def create_draft(service: Any, raw: str, thread_id: Optional[str] = None) -> dict:
    """Save an encoded message as a draft. Returns the Gmail draft resource."""
    try:
        result = (
            service.users()
            .drafts()
            .create(userId=GMAIL_USER_ID, body={"message": _message_body(raw, thread_id)})
            .execute()
        )
    except HttpError as e:
        raise http_error_to_gmail_error(e, "create draft") from e
    logger.info("Created Gmail draft %s", result.get("id"))
    return result


def _decode_part(data: Optional[str]) -> str:
    if not data:
        return ""
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4)).decode("utf-8", errors="replace")


def extract_body(payload: dict) -> tuple[str, str]:
    """
    Walk a message payload and collect its text and HTML bodies.

    Returns:
        (text, html)
    """
    text, html = "", ""
    mime_type = payload.get("mimeType", "")
    data = payload.get("body", {}).get("data")

    if mime_type == "text/plain":
        text = _decode_part(data)
    elif mime_type == "text/html":
        html = _decode_part(data)

    for part in payload.get("parts", []) or []:
        part_text, part_html = extract_body(part)
        text = text or part_text
        html = html or part_html

    return text, html


def read_email(service: Any, message_id: str) -> dict:
    """Fetch one message and flatten its headers and body."""
    try:
        message = (
            service.users()
            .messages()
            .get(userId=GMAIL_USER_ID, id=message_id, format="full")
            .execute()
        )
    except HttpError as e:
        raise http_error_to_gmail_error(e, f"read email {message_id}") from e

    payload = message.get("payload", {})
    headers = {h["name"].lower(): h["value"] for h in payload.get("headers", [])}
    text, html = extract_body(payload)

    return {
        "id": message.get("id"),
        "threadId": message.get("threadId"),
        "labelIds": message.get("labelIds", []),
        "subject": headers.get("subject", ""),
        "from": headers.get("from", ""),
        "to": headers.get("to", ""),
        "date": headers.get("date", ""),
        "body": text or html,
        "snippet": message.get("snippet", ""),
    }


def search_emails(service: Any, query: str, max_results: int = 10) -> list[dict]:
    """
    Search messages with Gmail query syntax.

    Returns:
        One summary per match with id, subject, from and date
    """
    try:
        response = (
            service.users()
            .messages()
            .list(userId=GMAIL_USER_ID, q=query, maxResults=max_results)
            .execute()
        )
        results = []
        for ref in response.get("messages", []):
            detail = (
                service.users()
                .messages()
                .get(
                    userId=GMAIL_USER_ID,
                    id=ref["id"],
                    format="metadata",
                    metadataHeaders=["Subject", "From", "Date"],
                )
                .execute()
            )
            headers = {
                h["name"].lower(): h["value"]
                for h in detail.get("payload", {}).get("headers", [])
            }
            results.append(
                {
                    "id": ref["id"],
                    "subject": headers.get("subject", ""),
                    "from": headers.get("from", ""),
                    "date": headers.get("date", ""),
                }
            )
    except HttpError as e:
        raise http_error_to_gmail_error(e, "search emails") from e
    return results


def modify_email(
    service: Any,
    message_id: str,
    add_label_ids: Optional[list[str]] = None,
    remove_label_ids: Optional[list[str]] = None,
) -> dict:
    """Add and remove labels on one message."""
    body: dict[str, list[str]] = {}
    if add_label_ids:
        body["addLabelIds"] = add_label_ids
    if remove_label_ids:
        body["removeLabelIds"] = remove_label_ids

    try:
        return (
            service.users()
            .messages()
            .modify(userId=GMAIL_USER_ID, id=message_id, body=body)
            .execute()
        )
    except HttpError as e:
        raise http_error_to_gmail_error(e, f"modify email {message_id}") from e


def delete_email(service: Any, message_id: str) -> None:
    """Permanently delete one message."""
    try:
        service.users().messages().delete(userId=GMAIL_USER_ID, id=message_id).execute()
    except HttpError as e:
        raise http_error_to_gmail_error(e, f"delete email {message_id}") from e
    logger.info("Deleted Gmail message %s", message_id)
