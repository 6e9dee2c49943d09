"""Tests for exec_brief.integrations.gmail: inbox reads and sending.

All Google API calls are mocked.
"""

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from exec_brief.integrations.gmail import GmailAdapter, parse_sender
from exec_brief.ports.mail_port import MailError

_PATCH_BUILD = "exec_brief.integrations.gmail.build_service"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _message(msg_id, sender="Ann Lee <ann@acme.com>", subject="Q3 numbers",
             labels=("INBOX", "UNREAD", "IMPORTANT"), date="Tue, 10 Mar 2026 09:15:00 -0400"):
    headers = [{"name": "From", "value": sender}, {"name": "Date", "value": date}]
    if subject is not None:
        headers.append({"name": "Subject", "value": subject})
    return {
        "id": msg_id,
        "snippet": f"snippet {msg_id}",
        "labelIds": list(labels),
        "payload": {"headers": headers},
    }


def _mock_service(messages):
    service = MagicMock()
    resource = service.users.return_value.messages.return_value
    resource.list.return_value.execute.return_value = {
        "messages": [{"id": m["id"]} for m in messages],
    }
    by_id = {m["id"]: m for m in messages}

    def _get(userId, id, format):
        request = MagicMock()
        request.execute.return_value = by_id[id]
        return request

    resource.get.side_effect = _get
    resource.send.return_value.execute.return_value = {"id": "sent1"}
    return service


def _token_store():
    store = MagicMock()
    store.get_valid_access_token = AsyncMock(return_value="access-token")
    return store


# ---------------------------------------------------------------------------
# parse_sender
# ---------------------------------------------------------------------------


class TestParseSender:
    def test_name_and_address(self):
        assert parse_sender("Ann Lee <ann@acme.com>") == ("Ann Lee", "ann@acme.com")

    def test_quoted_name(self):
        assert parse_sender('"Lee, Ann" <ann@acme.com>') == ("Lee, Ann", "ann@acme.com")

    def test_bare_address_falls_back_to_raw(self):
        assert parse_sender("ann@acme.com") == ("ann@acme.com", "ann@acme.com")


# ---------------------------------------------------------------------------
# fetch_recent_emails
# ---------------------------------------------------------------------------


class TestFetchRecentEmails:
    @pytest.mark.asyncio
    async def test_normalizes_messages_in_list_order(self):
        service = _mock_service([_message("m1"), _message("m2", labels=("INBOX",))])
        with patch(_PATCH_BUILD, return_value=service):
            emails = await GmailAdapter(_token_store()).fetch_recent_emails(5)

        assert [e.id for e in emails] == ["m1", "m2"]
        first = emails[0]
        assert first.sender == "Ann Lee"
        assert first.sender_email == "ann@acme.com"
        assert first.subject == "Q3 numbers"
        assert first.unread is True
        assert first.labels == ["IMPORTANT"]
        assert first.timestamp.year == 2026
        assert emails[1].unread is False

        listing = service.users.return_value.messages.return_value.list
        listing.assert_called_once_with(userId="me", maxResults=5, q="in:inbox")

    @pytest.mark.asyncio
    async def test_missing_subject_defaults(self):
        service = _mock_service([_message("m1", subject=None)])
        with patch(_PATCH_BUILD, return_value=service):
            emails = await GmailAdapter(_token_store()).fetch_recent_emails()
        assert emails[0].subject == "No Subject"

    @pytest.mark.asyncio
    async def test_priority_comes_from_classifier(self):
        classifier = MagicMock()
        classifier.classify = AsyncMock(return_value="high")
        service = _mock_service([_message("m1")])
        with patch(_PATCH_BUILD, return_value=service):
            emails = await GmailAdapter(_token_store(), classifier).fetch_recent_emails()

        assert emails[0].priority == "high"
        classifier.classify.assert_awaited_once_with(
            "m1", "Q3 numbers", "snippet m1", "ann@acme.com",
        )

    @pytest.mark.asyncio
    async def test_api_failure_raises_mail_error(self):
        service = MagicMock()
        resource = service.users.return_value.messages.return_value
        resource.list.return_value.execute.side_effect = RuntimeError("quota exceeded")
        with patch(_PATCH_BUILD, return_value=service):
            with pytest.raises(MailError, match="quota exceeded"):
                await GmailAdapter(_token_store()).fetch_recent_emails()


# ---------------------------------------------------------------------------
# send_email
# ---------------------------------------------------------------------------


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_sends_unpadded_urlsafe_mime(self):
        service = _mock_service([])
        with patch(_PATCH_BUILD, return_value=service):
            await GmailAdapter(_token_store()).send_email("bob@acme.com", "Hello", "Body text")

        send = service.users.return_value.messages.return_value.send
        kwargs = send.call_args.kwargs
        assert kwargs["userId"] == "me"
        raw = kwargs["body"]["raw"]
        assert "=" not in raw
        decoded = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode()
        assert "To: bob@acme.com" in decoded
        assert "Subject: Hello" in decoded
