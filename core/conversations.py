"""
Conversation aggregator for direct messages.

``list_conversations`` builds the inbox in two steps: a grouped query over
the user's messages yields, per counterpart, the last activity time and the
number of unread messages; a second pass fetches the counterparts and the
single latest message of each thread. Message bodies never pass through the
grouping step.
"""

import logging

from django.db import transaction
from django.db.models import BigIntegerField, Case, Count, F, Max, Q, When
from rest_framework.exceptions import NotFound, ValidationError

from .exceptions import SelfMessage
from .models import Message, User

logger = logging.getLogger(__name__)


def between(user_id, partner_id):
    """Q matching messages exchanged in either direction between two accounts."""
    return (
        Q(sender_id=user_id, receiver_id=partner_id)
        | Q(sender_id=partner_id, receiver_id=user_id)
    )


def list_conversations(user):
    """
    Return one entry per counterpart, most recent activity first.

    Each entry is a dict with ``partner`` (User), ``partner_id``,
    ``last_message_at``, ``unread_count`` and ``latest_message`` (Message).
    Ties on ``last_message_at`` are broken by counterpart id ascending.
    """
    partner_expr = Case(
        When(sender_id=user.pk, then=F('receiver_id')),
        default=F('sender_id'),
        output_field=BigIntegerField(),
    )

    groups = list(
        Message.objects
        .filter(Q(sender=user) | Q(receiver=user))
        .annotate(partner_id=partner_expr)
        .values('partner_id')
        .annotate(
            last_message_at=Max('created_at'),
            unread_count=Count('id', filter=Q(receiver=user, is_read=False)),
        )
        .order_by('-last_message_at', 'partner_id')
    )

    if not groups:
        return []

    partners = User.objects.in_bulk([group['partner_id'] for group in groups])

    conversations = []
    for group in groups:
        partner_id = group['partner_id']
        latest_message = (
            Message.objects
            .filter(between(user.pk, partner_id))
            .order_by('-created_at', '-id')
            .first()
        )
        conversations.append({
            'partner_id': partner_id,
            'partner': partners.get(partner_id),
            'last_message_at': group['last_message_at'],
            'unread_count': group['unread_count'],
            'latest_message': latest_message,
        })
    return conversations


def get_thread(user, partner_id, page=1, limit=20):
    """
    Return one page of the thread with ``partner_id``, oldest message first.

    Messages are paged newest-first so page 1 is the most recent slice; the
    slice is then reversed for display. Serving the page marks every unread
    message from the partner as read.

    Returns:
        tuple: (partner, messages, total)

    Raises:
        NotFound: If the partner account does not exist
    """
    try:
        partner = User.objects.get(pk=partner_id)
    except User.DoesNotExist:
        raise NotFound('User not found')

    thread = (
        Message.objects
        .filter(between(user.pk, partner.pk))
        .select_related('sender', 'receiver')
        .order_by('-created_at', '-id')
    )

    with transaction.atomic():
        total = thread.count()
        offset = (page - 1) * limit
        messages = list(thread[offset:offset + limit])
        messages.reverse()

        marked = Message.objects.filter(
            sender=partner, receiver=user, is_read=False
        ).update(is_read=True)

    if marked:
        logger.info(f"Marked {marked} messages from {partner.pk} to {user.pk} as read")
    return partner, messages, total


def send_message(sender, receiver_id, content, model_url=''):
    """
    Send a direct message.

    Raises:
        SelfMessage: Sender and receiver are the same account
        NotFound: Receiver missing or inactive
        ValidationError: Content empty or longer than 1000 characters
    """
    if str(sender.pk) == str(receiver_id):
        raise SelfMessage()

    if not content or len(content) > 1000:
        raise ValidationError({'content': 'Message must be between 1 and 1000 characters.'})

    receiver = User.objects.filter(pk=receiver_id, is_active=True).first()
    if receiver is None:
        raise NotFound('Receiver not found or inactive')

    message = Message.objects.create(
        sender=sender,
        receiver=receiver,
        content=content,
        model_url=model_url or '',
    )
    logger.info(f"Message sent. Message ID: {message.id}, From: {sender.pk}, To: {receiver.pk}")
    return message


def unread_count(user):
    return Message.objects.filter(receiver=user, is_read=False).count()


def mark_read(user, message_id):
    """Mark one received message as read. Only the receiver may do this."""
    try:
        message = Message.objects.select_related('sender', 'receiver').get(pk=message_id, receiver=user)
    except Message.DoesNotExist:
        raise NotFound('Message not found')

    if not message.is_read:
        message.is_read = True
        message.save(update_fields=['is_read'])
    return message


def mark_thread_read(user, partner_id):
    """Mark every unread message from ``partner_id`` to ``user`` as read; returns the count."""
    return Message.objects.filter(
        sender_id=partner_id, receiver=user, is_read=False
    ).update(is_read=True)


def delete_message(user, message_id):
    """Delete a message. Allowed for its sender and for admins."""
    queryset = Message.objects.all() if user.is_admin() else Message.objects.filter(sender=user)
    deleted, _ = queryset.filter(pk=message_id).delete()
    if not deleted:
        raise NotFound('Message not found or access denied')
    logger.info(f"Message deleted. Message ID: {message_id}, User: {user.email}")
