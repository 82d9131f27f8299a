"""
Outbound email over SMTP.

``EmailService.send_email`` renders one of the named templates from
``email_templates`` and delivers the result with ``smtplib``.  Delivery
is synchronous; the notification dispatcher runs it on a worker thread so
that request handlers never wait for the mail server.  When no SMTP host
is configured the service runs in a disabled mode that only logs.
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import Any, Dict

from home_services_api.app.core.config import settings
from home_services_api.app.services.email_templates import TEMPLATES

logger = logging.getLogger(__name__)


class EmailService:
    """Render and deliver transactional emails."""

    @classmethod
    def render(cls, template: str, context: Dict[str, Any]) -> tuple[str, str]:
        """Return ``(subject, html)`` for a named template.

        Raises
        ------
        KeyError
            If ``template`` is not a known template name.
        """
        return TEMPLATES[template](**context)

    @classmethod
    def deliver(cls, to: str, subject: str, html_content: str) -> bool:
        """Send one HTML message.  Returns ``False`` when email is disabled."""
        if not settings.smtp_host:
            logger.info("Email disabled (SMTP_HOST not set); skipping '%s' to %s", subject, to)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.email_from
        msg["To"] = to
        msg.attach(MIMEText(html_content, "html", "utf-8"))

        if settings.smtp_port == 465:
            server = smtplib.SMTP_SSL(
                settings.smtp_host, settings.smtp_port, context=ssl.create_default_context(), timeout=30
            )
        else:
            server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30)
        try:
            if settings.smtp_port != 465 and settings.smtp_use_tls:
                server.starttls(context=ssl.create_default_context())
            if settings.smtp_username:
                server.login(settings.smtp_username, settings.smtp_password)
            server.sendmail(parseaddr(settings.email_from)[1], [to], msg.as_string())
        finally:
            server.quit()
        logger.info("Email '%s' sent to %s", subject, to)
        return True

    @classmethod
    def send_email(cls, to: str, template: str, context: Dict[str, Any]) -> bool:
        """Render ``template`` with ``context`` and deliver it to ``to``.

        Never raises: rendering or SMTP failures are logged and reported
        as ``False`` so that a broken mail setup cannot fail a booking
        update.
        """
        try:
            subject, html_content = cls.render(template, context)
            return cls.deliver(to, subject, html_content)
        except Exception:
            logger.exception("Error sending '%s' email to %s", template, to)
            return False
