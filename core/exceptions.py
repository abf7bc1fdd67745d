"""
API exceptions and the project-wide DRF exception handler.

Every error response has the shape ``{"error": "<message>"}``. A few domain
errors add fields next to ``error`` (for example ``supportedMaterials``).
"""

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidTransition(exceptions.APIException):
    """A print-request status change that the transition table does not allow."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'invalid_transition'

    def __init__(self, current_status, target_status):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(f'Invalid status transition from {current_status} to {target_status}')


class UnsupportedMaterial(exceptions.APIException):
    """The selected maker does not print with the requested material."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'unsupported_material'

    def __init__(self, material, supported_materials):
        self.material = material
        self.supported_materials = list(supported_materials)
        super().__init__(f'Maker does not support material: {material}')

    def extra_fields(self):
        return {'supportedMaterials': self.supported_materials}


class SelfMessage(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Cannot send message to yourself'
    default_code = 'self_message'


class IdentityServiceUnavailable(exceptions.APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Authentication service unavailable'
    default_code = 'identity_unavailable'


def to_camel_case(name):
    head, *tail = name.split('_')
    return head + ''.join(part.title() for part in tail)


def first_error_message(detail, field=None):
    """
    Reduce a DRF error detail (string, list or nested dict) to one message.

    Field errors are prefixed with the camelCase field name so a client can
    tell which input was rejected.
    """
    if isinstance(detail, dict):
        for key, value in detail.items():
            nested_field = key if isinstance(key, str) and key not in ('non_field_errors', 'detail', '__all__') else None
            return first_error_message(value, nested_field or field)
        return 'Invalid request'

    if isinstance(detail, (list, tuple)):
        if not detail:
            return 'Invalid request'
        return first_error_message(detail[0], field)

    message = str(detail)
    if field:
        return f'{to_camel_case(field)}: {message}'
    return message


def api_exception_handler(exc, context):
    """
    Render every API error as ``{"error": message}``.

    Django's own ValidationError (raised by ``Model.full_clean``) is mapped
    to a DRF ValidationError first. Exceptions DRF does not know about are
    logged with a traceback and answered with a generic 500.
    """
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, 'error_dict'):
            exc = exceptions.ValidationError(exc.message_dict)
        else:
            exc = exceptions.ValidationError(exc.messages)

    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.error(
            f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__)
        )
        return Response(
            {'error': 'Internal server error'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if isinstance(exc, exceptions.APIException):
        detail = exc.detail
    elif isinstance(exc, Http404):
        detail = 'Not found.'
    elif isinstance(exc, DjangoPermissionDenied):
        detail = 'You do not have permission to perform this action.'
    else:
        detail = response.data

    body = {'error': first_error_message(detail)}
    if hasattr(exc, 'extra_fields'):
        body.update(exc.extra_fields())

    response.data = body
    return response
