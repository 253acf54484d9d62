"""
CigroTrack
Outgoing mail: team invitations and password resets.

Without MAIL_SERVER the message is only written to the log, which is
what development and the test-suite rely on.

    MAIL_SERVER / MAIL_PORT      SMTP endpoint (port 465 uses implicit TLS)
    MAIL_USE_TLS                 STARTTLS on plain ports (default true)
    MAIL_USERNAME / MAIL_PASSWORD
    MAIL_DEFAULT_SENDER
    FRONTEND_URL                 prefix for links inside mails
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from string import Template
from typing import Any, NamedTuple

from flask import current_app

logger = logging.getLogger(__name__)


class MailTemplate(NamedTuple):
    subject: str
    text: str
    html: str


_FRAME = (
    '<div style="font-family:Arial,sans-serif;max-width:560px;margin:0 auto">'
    '<h2 style="background:#1e293b;color:#fff;margin:0;padding:14px 20px">CigroTrack</h2>'
    '<div style="padding:20px;border:1px solid #e2e8f0">$content</div></div>'
)


def _framed(content: str) -> str:
    return Template(_FRAME).substitute(content=content)


TEMPLATES: dict[str, MailTemplate] = {
    "team_invite": MailTemplate(
        subject="$inviter_name invited you to $team_name on CigroTrack",
        text=(
            "$inviter_name invited you to join $team_name as $role.\n"
            "Open your invitations: $invite_link\n"
            "The invitation expires on $expires_at.\n"
        ),
        html=_framed(
            "<p>$inviter_name invited you to join <b>$team_name</b> as $role.</p>"
            '<p><a href="$invite_link">Open your invitations</a></p>'
            '<p style="color:#94a3b8;font-size:12px">Expires on $expires_at.</p>'
        ),
    ),
    "password_reset": MailTemplate(
        subject="Reset your CigroTrack password",
        text=(
            "Hi $name,\n\n"
            "Use this link within the next hour to choose a new password:\n"
            "$reset_link\n\n"
            "If you did not request a reset you can ignore this mail.\n"
        ),
        html=_framed(
            "<p>Hi $name,</p>"
            '<p><a href="$reset_link">Choose a new password</a> (valid for one hour).</p>'
            '<p style="color:#94a3b8;font-size:12px">'
            "If you did not request a reset you can ignore this mail.</p>"
        ),
    ),
}


def build_message(*, sender: str, to_email: str, to_name: str | None,
                  template: MailTemplate, context: dict[str, Any]) -> EmailMessage:
    """Render a template into a multipart text/html message.

    Placeholders missing from ``context`` are left in place.
    """
    values = {k: "" if v is None else str(v) for k, v in context.items()}
    msg = EmailMessage()
    msg["Subject"] = Template(template.subject).safe_substitute(values)
    msg["From"] = sender
    msg["To"] = formataddr((to_name, to_email)) if to_name else to_email
    msg.set_content(Template(template.text).safe_substitute(values))
    msg.add_alternative(Template(template.html).safe_substitute(values), subtype="html")
    return msg


class EmailService:
    """Template mailer. Delivery problems are logged and reported as False."""

    @staticmethod
    def frontend_url() -> str:
        return (current_app.config.get("FRONTEND_URL") or "").rstrip("/")

    @classmethod
    def send_from_template(cls, *, to_email: str, template_name: str,
                           context: dict[str, Any], to_name: str | None = None) -> bool:
        template = TEMPLATES.get(template_name)
        if template is None:
            logger.warning("Unknown mail template '%s'", template_name)
            return False

        cfg = current_app.config
        host = cfg.get("MAIL_SERVER")
        msg = build_message(
            sender=cfg.get("MAIL_DEFAULT_SENDER") or f"no-reply@{host or 'localhost'}",
            to_email=to_email, to_name=to_name,
            template=template, context=context,
        )

        if not host:
            logger.info("Mail not sent (MAIL_SERVER unset): template=%s to=%s",
                        template_name, to_email)
            return True

        try:
            cls._deliver(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail delivery failed: template=%s to=%s error=%s",
                         template_name, to_email, exc)
            return False
        logger.info("Mail sent: template=%s to=%s", template_name, to_email)
        return True

    @staticmethod
    def _deliver(msg: EmailMessage) -> None:
        cfg = current_app.config
        host = cfg["MAIL_SERVER"]
        port = int(cfg.get("MAIL_PORT") or 587)
        smtp_cls = smtplib.SMTP_SSL if port == 465 else smtplib.SMTP

        with smtp_cls(host, port, timeout=20) as smtp:
            if smtp_cls is smtplib.SMTP and cfg.get("MAIL_USE_TLS", True):
                smtp.starttls()
            user, password = cfg.get("MAIL_USERNAME"), cfg.get("MAIL_PASSWORD")
            if user and password:
                smtp.login(user, password)
            smtp.send_message(msg)
