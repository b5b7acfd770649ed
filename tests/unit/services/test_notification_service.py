import pytest
from unittest.mock import patch

from app.models.schemas import ParticipantProfile
from app.services.notification_service import NotificationService, truncate_preview


@pytest.fixture
def recipient():
    return ParticipantProfile(id=1, name="Acme", role="brand", email="team@acme.test")


def _service(api_key="re_test"):
    return NotificationService(api_key=api_key, sender="BroughtBy <noreply@test>", client_url="https://app.test/")


def test_truncate_preview_collapses_whitespace_and_ellipsizes():
    assert truncate_preview("hello\n  world", limit=50) == "hello world"
    assert truncate_preview("x" * 20, limit=10) == "xxxxxxx..."


@pytest.mark.asyncio
async def test_notify_sends_email_with_link(recipient):
    with patch("app.services.notification_service.resend") as mock_resend:
        mock_resend.Emails.send.return_value = {"id": "email-1"}

        await _service().notify(recipient, "Riley", "Hi <b>there</b>", 42)

    params = mock_resend.Emails.send.call_args[0][0]
    assert params["to"] == ["team@acme.test"]
    assert params["from"] == "BroughtBy <noreply@test>"
    assert params["subject"] == "New message from Riley"
    assert "https://app.test/messages/42" in params["html"]
    assert "&lt;b&gt;there&lt;/b&gt;" in params["html"]
    assert mock_resend.api_key == "re_test"


@pytest.mark.asyncio
async def test_notify_without_api_key_skips(recipient):
    with patch("app.services.notification_service.resend") as mock_resend:
        await _service(api_key="").notify(recipient, "Riley", "Hi", 42)

    mock_resend.Emails.send.assert_not_called()


@pytest.mark.asyncio
async def test_notify_without_address_skips():
    no_email = ParticipantProfile(id=1, name="Acme", role="brand")
    with patch("app.services.notification_service.resend") as mock_resend:
        await _service().notify(no_email, "Riley", "Hi", 42)

    mock_resend.Emails.send.assert_not_called()


@pytest.mark.asyncio
async def test_notify_swallows_provider_failure(recipient):
    with patch("app.services.notification_service.resend") as mock_resend:
        mock_resend.Emails.send.side_effect = RuntimeError("resend is down")

        await _service().notify(recipient, "Riley", "Hi", 42)

    mock_resend.Emails.send.assert_called_once()
