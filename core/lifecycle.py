"""
Print-request lifecycle engine.

All status changes of a PrintRequest go through ``transition_print_request``:
it locks the row, checks who may move the request where, consults the
transition table, stamps the lifecycle timestamp and, on completion, bumps
the maker's completed-print counter. All of that commits together. Emails
are scheduled with ``transaction.on_commit`` and never affect the outcome.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Case, Count, F, IntegerField, Value, When
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from .exceptions import InvalidTransition, UnsupportedMaterial
from .models import MakerProfile, ModelListing, PrintRequest, Role, User
from .notifications import EventKind, notify_on_commit

logger = logging.getLogger(__name__)


# Targets an assigned maker may move a request to.
MAKER_TARGETS = frozenset(['ACCEPTED', 'PRINTING', 'COMPLETED', 'REJECTED'])

URGENCY_RANK = Case(
    When(urgency='High', then=Value(3)),
    When(urgency='Normal', then=Value(2)),
    When(urgency='Low', then=Value(1)),
    default=Value(0),
    output_field=IntegerField(),
)


def base_queryset():
    return PrintRequest.objects.select_related('model', 'customer', 'maker')


def create_print_request(customer, model_id, maker_id, material, quantity=1,
                         color='', notes='', urgency='Normal'):
    """
    Create a REQUESTED print request and notify the maker.

    Raises:
        NotFound: Model missing, or maker missing, inactive or not a maker
        UnsupportedMaterial: The maker does not list ``material``
    """
    try:
        model = ModelListing.objects.get(pk=model_id)
    except ModelListing.DoesNotExist:
        raise NotFound('Model not found')

    maker = User.objects.select_related('maker_profile').filter(
        pk=maker_id, role=Role.MAKER, is_active=True
    ).first()
    profile = getattr(maker, 'maker_profile', None) if maker else None
    if maker is None or profile is None:
        raise NotFound('Maker not found or inactive')

    if not profile.supports_material(material):
        raise UnsupportedMaterial(material, profile.materials)

    with transaction.atomic():
        print_request = PrintRequest.objects.create(
            model=model,
            customer=customer,
            maker=maker,
            quantity=quantity,
            material=material,
            color=color or '',
            notes=notes or '',
            urgency=urgency,
            status='REQUESTED',
        )

        notify_on_commit(EventKind.REQUEST_CREATED, maker.email, {
            'maker_name': maker.name,
            'customer_name': customer.name,
            'model_title': model.title,
            'model_url': model.source_url,
            'quantity': quantity,
            'material': material,
            'color': color or 'Any',
            'notes': notes,
            'urgency': urgency,
            'dashboard_url': f"{settings.FRONTEND_URL}/maker/dashboard",
        })

    logger.info(
        f"Print request created. Request ID: {print_request.id}, "
        f"Customer: {customer.email}, Maker: {maker.email}, Material: {material}"
    )
    return print_request


def check_transition_allowed(print_request, caller, target_status):
    """
    Decide whether ``caller`` may move ``print_request`` to ``target_status``.

    Order of checks:
    1. The caller must be an admin or a party to the request (Forbidden).
    2. The transition table must allow the move (InvalidTransition), so
       terminal states reject every caller the same way.
    3. The caller's role must allow the target: assigned makers may accept,
       start, complete or reject; the requesting customer may only cancel,
       and only while the request is still REQUESTED (Forbidden).
    """
    role = Role(caller.role)

    if role == Role.ADMIN:
        is_party = True
    elif role == Role.MAKER:
        is_party = print_request.maker_id == caller.pk
    elif role == Role.CUSTOMER:
        is_party = print_request.customer_id == caller.pk
    else:
        raise ValueError(f"Unhandled role: {role}")

    if not is_party:
        raise PermissionDenied('Not authorized to update this request')

    if not print_request.can_transition_to(target_status):
        raise InvalidTransition(print_request.status, target_status)

    if role == Role.ADMIN:
        return
    if role == Role.MAKER:
        if target_status not in MAKER_TARGETS:
            raise PermissionDenied('Not authorized to update this request')
    elif role == Role.CUSTOMER:
        if target_status != 'CANCELLED' or print_request.status != 'REQUESTED':
            raise PermissionDenied('Not authorized to update this request')


def transition_print_request(request_id, caller, target_status, quoted_price=None,
                             final_price=None, notes=None):
    """
    Move a print request to ``target_status``.

    The row is locked for the duration of the transaction, so two concurrent
    calls serialize: the second one sees the committed status and fails with
    InvalidTransition instead of overwriting it.

    Raises:
        NotFound: No such request
        PermissionDenied: Caller may not request this change
        InvalidTransition: The transition table does not allow it
    """
    with transaction.atomic():
        try:
            print_request = PrintRequest.objects.select_for_update().get(pk=request_id)
        except PrintRequest.DoesNotExist:
            raise NotFound('Print request not found')

        try:
            check_transition_allowed(print_request, caller, target_status)
        except (PermissionDenied, InvalidTransition):
            logger.warning(
                f"Rejected print request transition. Request ID: {request_id}, "
                f"Status: {print_request.status} -> {target_status}, "
                f"User: {caller.email} (ID: {caller.pk})"
            )
            raise

        old_status = print_request.status
        now = timezone.now()
        update_fields = ['status', 'updated_at']

        print_request.status = target_status
        timestamp_field = PrintRequest.STATUS_TIMESTAMPS.get(target_status)
        if timestamp_field:
            setattr(print_request, timestamp_field, now)
            update_fields.append(timestamp_field)
        if quoted_price is not None:
            print_request.quoted_price = quoted_price
            update_fields.append('quoted_price')
        if final_price is not None:
            print_request.final_price = final_price
            update_fields.append('final_price')
        if notes is not None:
            print_request.notes = notes
            update_fields.append('notes')

        print_request.save(update_fields=update_fields)

        if target_status == 'COMPLETED':
            MakerProfile.objects.filter(user_id=print_request.maker_id).update(
                completed_prints=F('completed_prints') + 1
            )

        customer = print_request.customer
        if target_status == 'ACCEPTED':
            notify_on_commit(EventKind.REQUEST_ACCEPTED, customer.email, {
                'customer_name': customer.name,
                'maker_name': print_request.maker.name,
                'model_title': print_request.model.title,
                'quoted_price': print_request.quoted_price,
            })
        elif target_status == 'COMPLETED':
            notify_on_commit(EventKind.REQUEST_COMPLETED, customer.email, {
                'customer_name': customer.name,
                'maker_name': print_request.maker.name,
                'model_title': print_request.model.title,
            })

    logger.info(
        f"Print request status updated. Request ID: {request_id}, "
        f"Old Status: {old_status}, New Status: {target_status}, "
        f"User: {caller.email} (ID: {caller.pk})"
    )
    return print_request


def delete_print_request(request_id, caller):
    """
    Delete a request. Admins may delete any; customers only their own while REQUESTED.
    """
    with transaction.atomic():
        try:
            print_request = PrintRequest.objects.select_for_update().get(pk=request_id)
        except PrintRequest.DoesNotExist:
            raise NotFound('Print request not found')

        can_delete = caller.is_admin() or (
            print_request.customer_id == caller.pk and print_request.status == 'REQUESTED'
        )
        if not can_delete:
            raise PermissionDenied('Cannot delete this request')

        print_request.delete()

    logger.info(f"Print request deleted. Request ID: {request_id}, User: {caller.email}")


def visible_print_requests(user):
    """Requests a user may list: own (customer), assigned (maker) or all (admin)."""
    role = Role(user.role)
    queryset = base_queryset()

    if role == Role.CUSTOMER:
        return queryset.filter(customer=user)
    if role == Role.MAKER:
        return queryset.filter(maker=user)
    if role == Role.ADMIN:
        return queryset
    raise ValueError(f"Unhandled role: {role}")


def get_print_request(request_id, user):
    try:
        print_request = base_queryset().get(pk=request_id)
    except PrintRequest.DoesNotExist:
        raise NotFound('Print request not found')

    if not (user.is_admin() or user.pk in (print_request.customer_id, print_request.maker_id)):
        raise PermissionDenied('Access denied')
    return print_request


def maker_queue(maker, status=None):
    """
    Work queue of a maker: active requests by default, most urgent first,
    oldest first within the same urgency.
    """
    queryset = base_queryset().filter(maker=maker)
    if status:
        queryset = queryset.filter(status=status)
    else:
        queryset = queryset.filter(status__in=PrintRequest.ACTIVE_STATUSES)

    return queryset.annotate(urgency_rank=URGENCY_RANK).order_by('-urgency_rank', 'created_at', 'id')


def status_overview(user):
    """Count visible requests per status, plus the total."""
    stats = {'total': 0}
    for code, _label in PrintRequest.STATUS_CHOICES:
        stats[code.lower()] = 0

    rows = (
        visible_print_requests(user)
        .order_by()
        .values('status')
        .annotate(count=Count('id'))
    )
    for row in rows:
        stats[row['status'].lower()] = row['count']
        stats['total'] += row['count']
    return stats
