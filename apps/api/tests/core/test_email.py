"""
Unit tests for guardian notification emails.
"""

from unittest.mock import patch

import pytest

from gsos.core import email


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_skips_delivery_without_api_key(self):
        with (
            patch.object(email.resend, "api_key", None),
            patch.object(email.resend.Emails, "send") as mock_send,
        ):
            assert await email.send_email("a@example.com", "Subject", "<p>hi</p>") is True
        mock_send.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_failure_returns_false(self):
        with (
            patch.object(email.resend, "api_key", "re_test"),
            patch.object(email.resend.Emails, "send", side_effect=RuntimeError("boom")),
        ):
            assert await email.send_email("a@example.com", "Subject", "<p>hi</p>") is False

    @pytest.mark.asyncio
    async def test_sends_through_resend(self):
        with (
            patch.object(email.resend, "api_key", "re_test"),
            patch.object(email.resend.Emails, "send", return_value={"id": "em_1"}) as mock_send,
        ):
            assert await email.send_email("a@example.com", "Subject", "<p>hi</p>") is True
        params = mock_send.call_args.args[0]
        assert params["to"] == ["a@example.com"]
        assert params["from"] == email.EMAIL_FROM


class TestTemplates:
    @pytest.mark.asyncio
    async def test_application_received_escapes_names(self):
        with patch.object(email, "send_email", return_value=True) as mock_send:
            await email.send_application_received(
                to_email="parent@example.com",
                guardian_name="<script>alert(1)</script>",
                applicant_name="Amara Kamara",
                application_number="APP-2026-0A1B2C3D",
            )

        html = mock_send.call_args.kwargs["html_content"]
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "APP-2026-0A1B2C3D" in mock_send.call_args.kwargs["subject"]

    @pytest.mark.asyncio
    async def test_status_update_includes_label_and_message(self):
        with patch.object(email, "send_email", return_value=True) as mock_send:
            await email.send_admission_status_update(
                to_email="parent@example.com",
                guardian_name="Fatmata Kamara",
                applicant_name="Amara Kamara",
                application_number="APP-2026-0A1B2C3D",
                status_label="Offer Made",
                message="Please respond to the offer.",
            )

        kwargs = mock_send.call_args.kwargs
        assert kwargs["subject"] == "Application APP-2026-0A1B2C3D: Offer Made"
        assert "Please respond to the offer." in kwargs["html_content"]
