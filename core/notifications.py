"""
Transactional email notifications.

``notify`` renders a Django template for an event and sends it through the
configured email backend. It makes a single attempt and never raises: the
caller's operation has already committed by the time it runs (callers
schedule it with ``transaction.on_commit``), so a failed email is logged and
reported as ``False``.
"""

import enum
import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import transaction
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)


class EventKind(enum.Enum):
    REQUEST_CREATED = 'request-created'
    REQUEST_ACCEPTED = 'request-accepted'
    REQUEST_COMPLETED = 'request-completed'
    ACCOUNT_WELCOMED = 'account-welcomed'


# (subject, template) per event kind
TEMPLATES = {
    EventKind.REQUEST_CREATED: ('New Print Request - ThePrintFarm', 'emails/request_created.html'),
    EventKind.REQUEST_ACCEPTED: ('Print Request Accepted - ThePrintFarm', 'emails/request_accepted.html'),
    EventKind.REQUEST_COMPLETED: ('Your Print is Complete! - ThePrintFarm', 'emails/request_completed.html'),
    EventKind.ACCOUNT_WELCOMED: ('Welcome to ThePrintFarm!', 'emails/account_welcomed.html'),
}


def notify(event_kind, to, data):
    """
    Render and send the email for ``event_kind`` to ``to``.

    Args:
        event_kind: EventKind member (or its string value)
        to: Recipient email address
        data: Template context

    Returns:
        bool: True if the backend accepted the message, False otherwise
    """
    try:
        event_kind = EventKind(event_kind)
        subject, template_name = TEMPLATES[event_kind]

        if not getattr(settings, 'EMAIL_NOTIFICATIONS_ENABLED', True):
            logger.warning(f"Email notifications disabled. Skipped {event_kind.value} email to {to}")
            return False

        context = {'dashboard_url': f"{settings.FRONTEND_URL}/dashboard", **data}
        html_body = render_to_string(template_name, context)

        message = EmailMultiAlternatives(
            subject=subject,
            body=strip_tags(html_body),
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[to],
        )
        message.attach_alternative(html_body, 'text/html')
        sent = message.send(fail_silently=False)
    except Exception as e:
        logger.error(
            f"Failed to send {getattr(event_kind, 'value', event_kind)} email to {to}: {e}",
            exc_info=True
        )
        return False

    logger.info(f"Sent {event_kind.value} email to {to}")
    return bool(sent)


def notify_on_commit(event_kind, to, data):
    """Schedule ``notify`` to run once the current transaction commits."""
    transaction.on_commit(lambda: notify(event_kind, to, data))
