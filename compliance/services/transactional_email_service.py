"""
Transactional Email Service

Delivers alert, invitation, onboarding and billing emails through one of
several providers chosen with EMAIL_PROVIDER:

- Resend (default)
- SendGrid
- Mailgun (REST via requests)
- SMTP (aiosmtplib), for self-hosted relays and local mail catchers

Every provider returns a result dict instead of raising so callers can
turn a failed delivery into a retry.
"""

import os
import re
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List

import aiosmtplib
import requests
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


class EmailProvider(Enum):
    """Supported email service providers."""
    RESEND = "resend"
    SENDGRID = "sendgrid"
    MAILGUN = "mailgun"
    SMTP = "smtp"


class TransactionalEmailConfig:
    """Configuration for transactional email services."""

    def __init__(self):
        self.provider = EmailProvider(os.getenv('EMAIL_PROVIDER', 'resend').lower())

        self.from_email = os.getenv('FROM_EMAIL', 'alerts@compliancecalendar.app')
        self.from_name = os.getenv('FROM_NAME', 'Compliance Calendar')
        self.reply_to_email = os.getenv('REPLY_TO_EMAIL', '')

        self.resend_api_key = os.getenv('RESEND_API_KEY', '')
        self.sendgrid_api_key = os.getenv('SENDGRID_API_KEY', '')
        self.mailgun_api_key = os.getenv('MAILGUN_API_KEY', '')
        self.mailgun_domain = os.getenv('MAILGUN_DOMAIN', '')

        self.smtp_host = os.getenv('SMTP_HOST', '')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_username = os.getenv('SMTP_USERNAME', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.smtp_use_tls = os.getenv('SMTP_USE_TLS', 'false').lower() == 'true'

        self.template_dir = os.getenv('EMAIL_TEMPLATE_DIR', str(DEFAULT_TEMPLATE_DIR))

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>"

    def is_configured(self) -> bool:
        """Check if the selected provider is properly configured."""
        return not self.validate()

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if not self.from_email:
            errors.append("FROM_EMAIL is required")
        if self.provider == EmailProvider.RESEND and not self.resend_api_key:
            errors.append("RESEND_API_KEY is required for Resend provider")
        elif self.provider == EmailProvider.SENDGRID and not self.sendgrid_api_key:
            errors.append("SENDGRID_API_KEY is required for SendGrid provider")
        elif self.provider == EmailProvider.MAILGUN:
            if not self.mailgun_api_key:
                errors.append("MAILGUN_API_KEY is required for Mailgun provider")
            if not self.mailgun_domain:
                errors.append("MAILGUN_DOMAIN is required for Mailgun provider")
        elif self.provider == EmailProvider.SMTP and not self.smtp_host:
            errors.append("SMTP_HOST is required for SMTP provider")
        return errors


class ResendEmailService:
    """Email service implementation for Resend."""

    def __init__(self, config: TransactionalEmailConfig):
        import resend

        resend.api_key = config.resend_api_key
        self.config = config
        self.client = resend

    async def send_email(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> Dict[str, Any]:
        email_data: Dict[str, Any] = {
            "from": self.config.sender,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            email_data["text"] = text_content
        if self.config.reply_to_email:
            email_data["reply_to"] = self.config.reply_to_email
        try:
            result = self.client.Emails.send(email_data)
        except Exception as e:
            return {'success': False, 'provider': 'resend', 'error': str(e)}
        return {'success': True, 'provider': 'resend', 'message_id': result.get('id', '')}


class SendGridEmailService:
    """Email service implementation for SendGrid."""

    def __init__(self, config: TransactionalEmailConfig):
        from sendgrid import SendGridAPIClient

        self.config = config
        self.client = SendGridAPIClient(api_key=config.sendgrid_api_key)

    async def send_email(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> Dict[str, Any]:
        from sendgrid.helpers.mail import From, Mail, PlainTextContent

        mail = Mail(
            from_email=From(self.config.from_email, self.config.from_name),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        if text_content:
            mail.plain_text_content = PlainTextContent(text_content)
        if self.config.reply_to_email:
            mail.reply_to = self.config.reply_to_email
        try:
            response = self.client.send(mail)
        except Exception as e:
            return {'success': False, 'provider': 'sendgrid', 'error': str(e)}
        return {
            'success': 200 <= response.status_code < 300,
            'provider': 'sendgrid',
            'message_id': response.headers.get('X-Message-Id', ''),
            'error': None if response.status_code < 300 else f"HTTP {response.status_code}",
        }


class MailgunEmailService:
    """Email service implementation for Mailgun."""

    def __init__(self, config: TransactionalEmailConfig):
        self.config = config
        self.base_url = f"https://api.mailgun.net/v3/{config.mailgun_domain}"

    async def send_email(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> Dict[str, Any]:
        data = {
            "from": self.config.sender,
            "to": to_email,
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            data["text"] = text_content
        if self.config.reply_to_email:
            data["h:Reply-To"] = self.config.reply_to_email
        try:
            response = requests.post(
                f"{self.base_url}/messages",
                auth=("api", self.config.mailgun_api_key),
                data=data,
                timeout=15,
            )
        except requests.RequestException as e:
            return {'success': False, 'provider': 'mailgun', 'error': str(e)}
        if response.status_code != 200:
            return {'success': False, 'provider': 'mailgun', 'error': f"HTTP {response.status_code}: {response.text}"}
        return {'success': True, 'provider': 'mailgun', 'message_id': response.json().get('id', '')}


class SmtpEmailService:
    """Email service implementation for plain SMTP relays."""

    def __init__(self, config: TransactionalEmailConfig):
        self.config = config

    async def send_email(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> Dict[str, Any]:
        message = MIMEMultipart('alternative')
        message['From'] = self.config.sender
        message['To'] = to_email
        message['Subject'] = subject
        message['Message-ID'] = make_msgid()
        if self.config.reply_to_email:
            message['Reply-To'] = self.config.reply_to_email
        if text_content:
            message.attach(MIMEText(text_content, 'plain', 'utf-8'))
        message.attach(MIMEText(html_content, 'html', 'utf-8'))

        try:
            async with aiosmtplib.SMTP(
                hostname=self.config.smtp_host,
                port=self.config.smtp_port,
                use_tls=self.config.smtp_use_tls,
            ) as smtp:
                if self.config.smtp_username and self.config.smtp_password:
                    await smtp.login(self.config.smtp_username, self.config.smtp_password)
                await smtp.send_message(message)
        except (aiosmtplib.SMTPException, OSError) as e:
            return {'success': False, 'provider': 'smtp', 'error': f"SMTP sending failed: {e}"}
        return {'success': True, 'provider': 'smtp', 'message_id': message['Message-ID']}


_PROVIDER_CLASSES = {
    EmailProvider.RESEND: ResendEmailService,
    EmailProvider.SENDGRID: SendGridEmailService,
    EmailProvider.MAILGUN: MailgunEmailService,
    EmailProvider.SMTP: SmtpEmailService,
}


class TransactionalEmailService:
    """Main transactional email service that delegates to provider implementations."""

    def __init__(self, config: Optional[TransactionalEmailConfig] = None):
        self.config = config or TransactionalEmailConfig()
        self.provider_service = None
        self._setup_provider()
        self.template_env = Environment(
            loader=FileSystemLoader(self.config.template_dir),
            autoescape=select_autoescape(['html']),
        )

    def _setup_provider(self):
        errors = self.config.validate()
        if errors:
            logger.warning("Email service not configured: %s", "; ".join(errors))
            return
        self.provider_service = _PROVIDER_CLASSES[self.config.provider](self.config)
        logger.info("Initialized %s email service", self.config.provider.value)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an email via the configured provider.

        Returns:
            Dict with 'success', 'provider', 'message_id' or 'error' keys
        """
        if not self.provider_service:
            return {'success': False, 'error': 'Email service not configured'}

        logger.info("Sending email to %s via %s", to_email, self.config.provider.value)
        result = await self.provider_service.send_email(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            text_content=text_content,
        )
        if result['success']:
            logger.info("Email sent to %s via %s", to_email, result['provider'])
        else:
            logger.error("Email sending failed: %s", result.get('error'))
        return result

    def render_template(self, template_name: str, context: Dict[str, Any]) -> tuple[str, str]:
        """
        Render email template with context.

        Returns:
            Tuple of (html_content, text_content); the text part falls back
            to a tag-stripped copy of the HTML when no .txt template exists.
        """
        html_content = self.template_env.get_template(f"{template_name}.html").render(**context)
        try:
            text_content = self.template_env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound:
            text_content = self._html_to_text(html_content)
        return html_content, text_content

    def _html_to_text(self, html_content: str) -> str:
        text = re.sub(r'<[^>]+>', '', html_content)
        text = text.replace('&amp;', '&').replace('&lt;', '<').replace('&gt;', '>')
        text = text.replace('&quot;', '"').replace('&#39;', "'")
        return re.sub(r'\s+', ' ', text).strip()

    async def test_connection(self) -> Dict[str, Any]:
        """Test email service configuration."""
        errors = self.config.validate()
        if errors:
            return {'success': False, 'error': f"Configuration errors: {', '.join(errors)}"}
        return {
            'success': True,
            'provider': self.config.provider.value,
            'message': f"Email service configured and ready ({self.config.provider.value})",
        }


# Global email service instance
_email_service = None


def get_transactional_email_service() -> TransactionalEmailService:
    """Get singleton transactional email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = TransactionalEmailService()
    return _email_service


def reset_transactional_email_service() -> None:
    global _email_service
    _email_service = None
