import os
import logging
from typing import Optional
from datetime import datetime

from jinja2 import Environment, FileSystemLoader, select_autoescape
from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, To, From, Subject, HtmlContent, PlainTextContent

from goodhours.core.settings import settings

logger = logging.getLogger("goodhours.email")

SENDER_NAME = "GoodHours"


def strftime_filter(value, format='%Y'):
    """Jinja2 filter: ``'now'|strftime('%Y')`` or a datetime value."""
    if isinstance(value, str) and value == 'now':
        return datetime.now().strftime(format)
    if isinstance(value, datetime):
        return value.strftime(format)
    return value


def get_email_template_env() -> Environment:
    """Get Jinja2 environment for email templates."""
    template_dir = os.path.join(os.path.dirname(__file__), '../templates/email')
    env = Environment(
        loader=FileSystemLoader(template_dir),
        autoescape=select_autoescape(['html', 'xml'])
    )
    env.filters['strftime'] = strftime_filter
    return env


def get_sendgrid_client() -> Optional[SendGridAPIClient]:
    """Get SendGrid client if configured, logging diagnostics without leaking the key."""
    api_key = settings.sendgrid_api_key or os.getenv("SENDGRID_API_KEY")
    if not api_key:
        if settings.is_test:
            # Tests patch SendGridAPIClient; keep the send() path exercised
            logger.debug("[email] SENDGRID_API_KEY missing; using dummy key in test mode")
            return SendGridAPIClient("DUMMY_TEST_KEY")
        logger.warning("[email] SENDGRID_API_KEY missing from environment")
        return None
    if api_key.startswith("your_"):
        logger.warning("[email] SENDGRID_API_KEY appears to be a placeholder (starts with 'your_')")
        return None
    logger.debug(f"[email] SendGrid key loaded (length={len(api_key)})")
    return SendGridAPIClient(api_key)


def send_email(to_email: str, subject: str, html_content: str,
               plain_content: str, from_email: str = None) -> bool:
    """Send one email through SendGrid.

    Delivery is best effort: configuration problems and provider errors are
    logged and reported as ``False`` so the calling domain operation still
    commits.
    """
    client = get_sendgrid_client()
    if not client:
        logger.warning(f"[email] Skipping send (client unavailable) to={to_email} subject={subject!r}")
        return False

    from_email = from_email or settings.email_from_address
    message = Mail(
        from_email=From(from_email, SENDER_NAME),
        to_emails=To(to_email),
        subject=Subject(subject),
        html_content=HtmlContent(html_content),
        plain_text_content=PlainTextContent(plain_content)
    )
    try:
        response = client.send(message)
    except HTTPError as e:
        logger.error(f"[email] Failed send to={to_email} status={getattr(e, 'status_code', None)} body={getattr(e, 'body', None)}")
        return False
    except Exception as e:
        logger.error(f"[email] Failed send to={to_email}: {e}")
        return False

    status_code = getattr(response, 'status_code', None)
    if status_code in (200, 202):
        logger.info(f"[email] Sent to={to_email} status={status_code}")
        return True
    logger.error(f"[email] Failed send to={to_email} status={status_code}")
    return False
