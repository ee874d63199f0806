"""Unit tests for email rendering and sending."""

from unittest.mock import patch

import pytest

from src.services.email_service import TEMPLATES, EmailService, EmailTemplateError, render_template

VARIABLES = {
    "client_name": "Ana <Souza>",
    "company_name": "Acme",
    "package_name": "Logo Premium",
    "comment": "Mais contraste",
    "version_label": "Versão 2",
    "version_number": "2",
    "order_url": "https://webq.com.br/cliente/design/o1",
}


class TestRenderTemplate:
    """Tests for render_template."""

    @pytest.mark.parametrize("slug", sorted(TEMPLATES))
    def test_every_template_renders(self, slug: str) -> None:
        subject, html_content, text_content = render_template(slug, VARIABLES)

        assert subject
        assert "https://webq.com.br/cliente/design/o1" in html_content
        assert "<strong>" not in text_content

    def test_escapes_html_only(self) -> None:
        _, html_content, text_content = render_template("design_order_approved", VARIABLES)

        assert "Ana &lt;Souza&gt;" in html_content
        assert "Ana <Souza>" in text_content

    def test_unknown_slug(self) -> None:
        with pytest.raises(EmailTemplateError):
            render_template("welcome", VARIABLES)

    def test_missing_variable(self) -> None:
        with pytest.raises(EmailTemplateError):
            render_template("design_order_revision_requested", {"company_name": "Acme"})


class TestSendTemplate:
    """Tests for EmailService.send_template."""

    @pytest.mark.asyncio
    @patch("src.services.email_service.resend.Emails.send")
    async def test_sends_through_resend(self, mock_send: object) -> None:
        mock_send.return_value = {"id": "em_123"}

        result = await EmailService().send_template(["admin@webq.com.br"], "design_order_approved", VARIABLES)

        assert result == {"email_id": "em_123", "subject": "Acme aprovou o design!"}
        params = mock_send.call_args.args[0]
        assert params["to"] == ["admin@webq.com.br"]
        assert params["from"] == "WebQ <noreply@webq.com.br>"
