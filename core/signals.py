"""
Django signals keeping role profiles in step with account roles.

A maker owns exactly one MakerProfile, a customer exactly one
CustomerProfile and an admin neither. Whenever an account is created or its
role changes, the receiver below creates the matching profile with default
values and retires the one that no longer applies.
"""

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import (
    DEFAULT_CUSTOMER_PROFILE,
    DEFAULT_MAKER_PROFILE,
    CustomerProfile,
    MakerProfile,
    Role,
    User,
)

logger = logging.getLogger(__name__)


def sync_role_profile(user):
    """
    Create the profile matching ``user.role`` and delete the other one.

    Returns the active profile, or None for admins.
    """
    role = Role(user.role)

    if role == Role.MAKER:
        CustomerProfile.objects.filter(user=user).delete()
        profile, created = MakerProfile.objects.get_or_create(
            user=user,
            defaults=dict(DEFAULT_MAKER_PROFILE, materials=list(DEFAULT_MAKER_PROFILE['materials']))
        )
    elif role == Role.CUSTOMER:
        MakerProfile.objects.filter(user=user).delete()
        profile, created = CustomerProfile.objects.get_or_create(
            user=user,
            defaults=dict(
                DEFAULT_CUSTOMER_PROFILE,
                preferred_materials=list(DEFAULT_CUSTOMER_PROFILE['preferred_materials'])
            )
        )
    elif role == Role.ADMIN:
        MakerProfile.objects.filter(user=user).delete()
        CustomerProfile.objects.filter(user=user).delete()
        return None
    else:
        raise ValueError(f"Unhandled role: {role}")

    if created:
        logger.info(f"Created {role.label.lower()} profile for user {user.email}")
    return profile


@receiver(post_save, sender=User)
def sync_profile_on_user_save(sender, instance, created, update_fields=None, **kwargs):
    """
    Signal receiver creating or retiring role profiles after a user is saved.

    Saves restricted to ``update_fields`` that do not include ``role`` (for
    example the ``last_login`` stamp on every authenticated request) are
    skipped. The work runs in the saving transaction, so a failure here
    rolls back the role change as well.

    Args:
        sender: The User model class
        instance: The User instance that was saved
        created: Boolean indicating if this is a new user
        update_fields: Fields passed to save(), if any
        **kwargs: Additional keyword arguments
    """
    if kwargs.get('raw'):
        return

    if update_fields is not None and 'role' not in update_fields:
        return

    try:
        with transaction.atomic():
            sync_role_profile(instance)
    except Exception as e:
        logger.error(
            f"Error syncing role profile for user {instance.email}: {e}",
            exc_info=True
        )
        raise
