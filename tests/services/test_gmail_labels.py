"""Tests for Gmail label and batch helpers."""

from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from mcp_gateway.core.exceptions import GmailAPIError
from mcp_gateway.services.gmail import batch, labels

LABELS = [
    {"id": "INBOX", "name": "INBOX", "type": "system"},
    {"id": "SENT", "name": "SENT", "type": "system"},
    {"id": "Label_1", "name": "Receipts", "type": "user"},
]


def http_error(status, message="boom"):
    return HttpError(httplib2.Response({"status": status}), f'{{"error": {{"message": "{message}"}}}}'.encode())


@pytest.fixture
def service():
    mock = MagicMock()
    mock.users().labels().list().execute.return_value = {"labels": LABELS}
    return mock


class TestLabels:
    def test_list_splits_system_and_user(self, service):
        result = labels.list_labels(service)

        assert result["count"] == {"total": 3, "system": 2, "user": 1}
        assert [label["id"] for label in result["user"]] == ["Label_1"]

    def test_create_defaults_visibility(self, service):
        service.users().labels().create().execute.return_value = {"id": "Label_2", "name": "Travel"}

        labels.create_label(service, "Travel")

        service.users().labels().create.assert_called_with(
            userId="me",
            body={"name": "Travel", "messageListVisibility": "show", "labelListVisibility": "labelShow"},
        )

    def test_create_duplicate(self, service):
        service.users().labels().create().execute.side_effect = http_error(409, "Label name exists or conflicts")

        with pytest.raises(GmailAPIError, match='Label "Receipts" already exists'):
            labels.create_label(service, "Receipts")

    def test_update_missing_label(self, service):
        service.users().labels().get().execute.side_effect = http_error(404)

        with pytest.raises(GmailAPIError, match='Label with ID "Label_9" not found.'):
            labels.update_label(service, "Label_9", {"name": "x"})

    def test_update(self, service):
        service.users().labels().get().execute.return_value = LABELS[2]
        service.users().labels().update().execute.return_value = {"id": "Label_1", "name": "Bills"}

        assert labels.update_label(service, "Label_1", {"name": "Bills"})["name"] == "Bills"

    def test_delete_refuses_system_label(self, service):
        service.users().labels().get().execute.return_value = LABELS[0]

        with pytest.raises(GmailAPIError, match='Cannot delete system label with ID "INBOX".'):
            labels.delete_label(service, "INBOX")
        service.users().labels().delete.assert_not_called()

    def test_delete_user_label(self, service):
        service.users().labels().get().execute.return_value = LABELS[2]

        labels.delete_label(service, "Label_1")

        service.users().labels().delete.assert_called_with(userId="me", id="Label_1")

    def test_find_is_case_insensitive(self, service):
        assert labels.find_label_by_name(service, "receipts")["id"] == "Label_1"
        assert labels.find_label_by_name(service, "missing") is None

    def test_get_or_create_reuses_existing(self, service):
        assert labels.get_or_create_label(service, "RECEIPTS")["id"] == "Label_1"
        service.users().labels().create.assert_not_called()

    def test_get_or_create_creates(self, service):
        service.users().labels().create().execute.return_value = {"id": "Label_2", "name": "New"}
        assert labels.get_or_create_label(service, "New")["id"] == "Label_2"


class TestBatch:
    def test_modify_chunks(self):
        service = MagicMock()
        ids = [f"m{i}" for i in range(5)]

        result = batch.batch_modify_emails(service, ids, add_label_ids=["STARRED"], batch_size=2)

        assert result == {"successes": ids, "failures": []}
        calls = service.users().messages().batchModify.call_args_list
        assert [c.kwargs["body"]["ids"] for c in calls] == [["m0", "m1"], ["m2", "m3"], ["m4"]]
        assert all(c.kwargs["body"]["addLabelIds"] == ["STARRED"] for c in calls)

    def test_delete_records_failed_chunk(self):
        service = MagicMock()
        service.users().messages().batchDelete().execute.side_effect = [None, http_error(500)]

        result = batch.batch_delete_emails(service, ["a", "b", "c"], batch_size=2)

        assert result["successes"] == ["a", "b"]
        assert result["failures"][0]["message_ids"] == ["c"]
