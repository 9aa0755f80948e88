"""
Outbound e-mail for the retention and nurture jobs.

When SMTP_HOST is not configured, messages are logged but not sent
(dev/test mode). smtplib is blocking, so delivery runs in a worker
thread.

Templates are str.format strings; missing keys render as "{key}"
instead of raising, so a template typo never aborts a cron run.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Protocol

from pagesmith.core.config import settings

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    async def send(self, *, to_email: str, subject: str, html_body: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class EmailMessage:
    subject: str
    html: str


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"


_LAYOUT = """\
<div style="font-family: -apple-system, 'Segoe UI', sans-serif; max-width: 600px; margin: 0 auto; color: #333;">
  <div style="background: {header_color}; padding: 32px 24px; border-radius: 12px 12px 0 0; text-align: center;">
    <h1 style="color: white; margin: 0; font-size: 22px;">{heading}</h1>
  </div>
  <div style="padding: 24px; background: #fafafa; border: 1px solid #e5e5e5; border-top: none; border-radius: 0 0 12px 12px;">
    {body}
    <p style="text-align: center; margin: 28px 0;">
      <a href="{app_url}/dashboard" style="background: #111827; color: white; padding: 12px 28px; border-radius: 8px; text-decoration: none;">{cta}</a>
    </p>
  </div>
</div>
"""

_URGENCY_COLORS = {
    "low": "#f59e0b",
    "medium": "#f97316",
    "high": "#ef4444",
    "critical": "#dc2626",
}

# ── Templates per locale ────────────────────────────────────
_TEMPLATES: dict[str, dict[str, dict[str, str]]] = {
    "en": {
        "deletion_reminder": {
            "subject": 'Reminder: your website "{project_name}" will be deleted in {label}',
            "heading": "Deletion in {label}",
            "body": (
                "<p>Hello{user_name},</p>"
                '<p>The subscription for <strong>"{project_name}"</strong> ({plan_name}) was cancelled.</p>'
                "<p><strong>{days_left} days left.</strong> After that the website, its images and "
                "invoices are permanently deleted.</p>"
                "<p>Renew the subscription to keep everything.</p>"
            ),
            "cta": "Renew subscription",
        },
        "deletion_confirmation": {
            "subject": 'Your website "{project_name}" has been deleted',
            "heading": "Website deleted",
            "body": (
                "<p>Hello{user_name},</p>"
                '<p>The grace period for <strong>"{project_name}"</strong> has ended and all of its '
                "data has been permanently deleted.</p>"
                "<p>You can start a new website at any time.</p>"
            ),
            "cta": "Open dashboard",
        },
        "nurture_3": {
            "subject": "Getting the most out of the AI editor",
            "heading": "Tips for the AI editor",
            "body": "<p>Hello{user_name},</p><p>Describe a change in plain words and the editor applies it. "
                    "Every edit can be undone.</p>",
            "cta": "Open the editor",
        },
        "nurture_7": {
            "subject": "Your website is waiting — need a hand?",
            "heading": "Your website is waiting",
            "body": "<p>Hello{user_name},</p><p>Publish your page to a free subdomain or connect your own domain.</p>",
            "cta": "Publish now",
        },
        "nurture_14": {
            "subject": "More tokens, more edits",
            "heading": "Keep improving your page",
            "body": "<p>Hello{user_name},</p><p>Token packages start at 500 tokens (about 10 AI edits).</p>",
            "cta": "See packages",
        },
    },
    "hr": {
        "deletion_reminder": {
            "subject": 'Podsjetnik: web stranica "{project_name}" briše se za {label}',
            "heading": "Brisanje za {label}",
            "body": (
                "<p>Pozdrav{user_name},</p>"
                '<p>Vaša pretplata za web stranicu <strong>"{project_name}"</strong> ({plan_name}) je otkazana.</p>'
                "<p><strong>Preostalo: {days_left} dana.</strong> Nakon toga svi podaci bit će trajno obrisani.</p>"
                "<p>Obnovite pretplatu i svi vaši podaci ostaju sačuvani.</p>"
            ),
            "cta": "Obnovi pretplatu",
        },
        "deletion_confirmation": {
            "subject": 'Web stranica "{project_name}" je obrisana',
            "heading": "Web stranica obrisana",
            "body": (
                "<p>Pozdrav{user_name},</p>"
                '<p>Razdoblje odgode za <strong>"{project_name}"</strong> je isteklo i svi podaci su trajno obrisani.</p>'
            ),
            "cta": "Otvori nadzornu ploču",
        },
        "nurture_3": {
            "subject": "Kako izvući maksimum iz AI editora?",
            "heading": "Savjeti za AI editor",
            "body": "<p>Pozdrav{user_name},</p><p>Opišite izmjenu svojim riječima i editor će je primijeniti.</p>",
            "cta": "Otvori editor",
        },
        "nurture_7": {
            "subject": "Vaša web stranica čeka — trebate li pomoć?",
            "heading": "Vaša web stranica čeka",
            "body": "<p>Pozdrav{user_name},</p><p>Objavite stranicu na besplatnoj poddomeni ili spojite svoju domenu.</p>",
            "cta": "Objavi",
        },
        "nurture_14": {
            "subject": "Nadogradite iskustvo — posebna ponuda",
            "heading": "Nastavite poboljšavati stranicu",
            "body": "<p>Pozdrav{user_name},</p><p>Paketi tokena počinju od 500 tokena (oko 10 AI izmjena).</p>",
            "cta": "Pogledaj pakete",
        },
    },
}


def render_email(
    template_name: str,
    locale: str | None = None,
    *,
    urgency: str = "low",
    **params: Any,
) -> EmailMessage:
    locale = locale or settings.LOCALE
    catalogue = _TEMPLATES.get(locale) or _TEMPLATES["en"]
    template = catalogue.get(template_name) or _TEMPLATES["en"][template_name]

    values = _SafeDict(params)
    if values.get("user_name"):
        values["user_name"] = f" {values['user_name']}"
    else:
        values["user_name"] = ""

    body = template["body"].format_map(values)
    html = _LAYOUT.format_map(
        _SafeDict(
            header_color=_URGENCY_COLORS.get(urgency, _URGENCY_COLORS["medium"]),
            heading=template["heading"].format_map(values),
            body=body,
            app_url=settings.APP_URL.rstrip("/"),
            cta=template["cta"],
        )
    )
    return EmailMessage(subject=template["subject"].format_map(values), html=html)


class SmtpMailer:
    """SMTP delivery; log-only when SMTP_HOST is empty."""

    @staticmethod
    def is_configured() -> bool:
        return bool(settings.SMTP_HOST)

    async def send(self, *, to_email: str, subject: str, html_body: str) -> bool:
        if not self.is_configured():
            logger.info("Email (log-only): to=%s subject='%s'", to_email, subject)
            return False

        await asyncio.to_thread(
            self._send_smtp, to_email=to_email, subject=subject, html_body=html_body,
        )
        logger.info("Email sent: to=%s subject='%s'", to_email, subject)
        return True

    @staticmethod
    def _send_smtp(*, to_email: str, subject: str, html_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.SMTP_FROM
        msg["To"] = to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
            if settings.SMTP_USE_TLS:
                smtp.starttls()
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            smtp.send_message(msg)


def get_mailer() -> Mailer:
    """FastAPI dependency — overridden in tests."""
    return SmtpMailer()
