"""Email service using Resend for design order transactional emails."""

import html
import logging
from dataclasses import dataclass
from typing import Any

import resend

from src.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailTemplate:
    """Subject and copy for one template slug. Fields are str.format patterns."""

    subject: str
    heading: str
    body: str
    cta_label: str


TEMPLATES: dict[str, EmailTemplate] = {
    "design_order_approved": EmailTemplate(
        subject="{company_name} aprovou o design!",
        heading="Design aprovado",
        body="<strong>{client_name}</strong> ({company_name}) aprovou a entrega de <strong>{package_name}</strong>.",
        cta_label="Ver pedido",
    ),
    "design_order_revision_requested": EmailTemplate(
        subject="{company_name} solicitou revisão - {package_name}",
        heading="Revisão solicitada",
        body=(
            "<strong>{client_name}</strong> ({company_name}) pediu correções em "
            "<strong>{package_name}</strong>:<br><br><em>{comment}</em>"
        ),
        cta_label="Abrir pedido",
    ),
    "design_order_delivered": EmailTemplate(
        subject="Nova versão disponível: {package_name}",
        heading="Nova versão disponível!",
        body="Olá {client_name}, a {version_label} de <strong>{package_name}</strong> está pronta para revisão.",
        cta_label="Revisar entrega",
    ),
    "design_order_bonus_delivered": EmailTemplate(
        subject="Entrega bônus disponível: {package_name}",
        heading="Entrega bônus disponível!",
        body="Olá {client_name}, a entrega {version_label} de <strong>{package_name}</strong> está disponível.",
        cta_label="Ver entrega",
    ),
    "design_order_final_delivered": EmailTemplate(
        subject="Pedido finalizado: {package_name}",
        heading="Pedido finalizado!",
        body="Olá {client_name}, o pedido <strong>{package_name}</strong> foi concluído com sucesso.",
        cta_label="Baixar arquivos",
    ),
}


class EmailTemplateError(KeyError):
    """Template slug unknown or a variable it needs is missing."""


def render_template(template_slug: str, variables: dict[str, str]) -> tuple[str, str, str]:
    """Render a template into (subject, html, text).

    Variables are HTML-escaped for the HTML part only.

    Raises:
        EmailTemplateError: If the slug is unknown or a variable is missing.
    """
    template = TEMPLATES.get(template_slug)
    if template is None:
        raise EmailTemplateError(f"Unknown email template: {template_slug}")

    escaped = {key: html.escape(str(value)) for key, value in variables.items()}
    try:
        subject = template.subject.format(**variables)
        body_html = template.body.format(**escaped)
        body_text = template.body.replace("<br>", "\n").format(**variables)
    except KeyError as e:
        raise EmailTemplateError(f"Missing variable {e} for template {template_slug}") from e

    for tag in ("<strong>", "</strong>", "<em>", "</em>"):
        body_text = body_text.replace(tag, "")

    order_url = escaped.get("order_url", "")
    html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{html.escape(subject)}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #111827; padding: 24px; border-radius: 10px 10px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 22px;">{template.heading}</h1>
    </div>
    <div style="background: #f9fafb; padding: 28px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 10px 10px;">
        <p style="font-size: 16px;">{body_html}</p>
        <div style="text-align: center; margin: 28px 0;">
            <a href="{order_url}" style="background: #2563eb; color: white; padding: 12px 28px; text-decoration: none; border-radius: 6px; font-weight: 600;">
                {template.cta_label}
            </a>
        </div>
    </div>
</body>
</html>
"""
    text_content = f"{template.heading}\n\n{body_text}\n\n{template.cta_label}: {variables.get('order_url', '')}\n"
    return subject, html_content, text_content


class EmailService:
    """Service for sending transactional emails via Resend."""

    def __init__(self) -> None:
        """Initialize email service with Resend API key."""
        settings = get_settings()
        resend.api_key = settings.resend_api_key
        self.from_email = settings.email_from_address

    async def send_template(
        self,
        to_emails: list[str],
        template_slug: str,
        variables: dict[str, str],
    ) -> dict[str, Any]:
        """Render and send a template to a list of recipients.

        Args:
            to_emails: Recipient email addresses.
            template_slug: Key into TEMPLATES.
            variables: Values substituted into the template.

        Returns:
            dict: Resend email id.

        Raises:
            EmailTemplateError: If the template cannot be rendered.
            Exception: If the Resend API call fails.
        """
        subject, html_content, text_content = render_template(template_slug, variables)

        response = resend.Emails.send({
            "from": self.from_email,
            "to": to_emails,
            "subject": subject,
            "html": html_content,
            "text": text_content,
        })

        logger.info("Email %s sent to %d recipient(s), id: %s", template_slug, len(to_emails), response.get("id"))
        return {"email_id": response.get("id"), "subject": subject}
