"""
Pagination producing the API's list envelope::

    {"items": [...], "pagination": {"page", "limit", "total",
                                    "totalPages", "hasNext", "hasPrev"}}
"""

import math

from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


def parse_positive_int(value, default, name, maximum=None):
    """
    Parse a query-string integer, falling back to ``default`` when absent.

    Raises:
        ValidationError: If the value is not a positive integer or exceeds ``maximum``
    """
    if value in (None, ''):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError({name: f'"{name}" must be a positive integer.'})
    if number < 1:
        raise ValidationError({name: f'"{name}" must be a positive integer.'})
    if maximum is not None and number > maximum:
        raise ValidationError({name: f'"{name}" cannot exceed {maximum}.'})
    return number


def pagination_meta(page, limit, total):
    total_pages = math.ceil(total / limit) if total else 0
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': total_pages,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }


class StandardPagination(PageNumberPagination):
    """
    Offset pagination driven by ``page`` and ``limit``.

    Out-of-range pages return an empty ``items`` list instead of a 404 so a
    client can always read ``total``.
    """

    page_size = 10
    page_query_param = 'page'
    page_size_query_param = 'limit'
    max_page_size = 50

    def paginate_queryset(self, queryset, request, view=None):
        self.page_number = parse_positive_int(request.query_params.get(self.page_query_param), 1, 'page')
        self.limit = parse_positive_int(
            request.query_params.get(self.page_size_query_param),
            self.page_size,
            'limit',
            maximum=self.max_page_size
        )
        self.total = len(queryset) if isinstance(queryset, list) else queryset.count()
        offset = (self.page_number - 1) * self.limit
        return list(queryset[offset:offset + self.limit])

    def get_paginated_response(self, data):
        return Response({
            'items': data,
            'pagination': pagination_meta(self.page_number, self.limit, self.total),
        })

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'properties': {
                'items': schema,
                'pagination': {'type': 'object'},
            },
        }


def paginate(request, queryset, page_size=10, max_page_size=50):
    """
    Paginate outside of a generic view.

    Returns ``(page_items, meta)``. Works on querysets and plain lists.
    """
    paginator = StandardPagination()
    paginator.page_size = page_size
    paginator.max_page_size = max_page_size
    items = paginator.paginate_queryset(queryset, request)
    return items, pagination_meta(paginator.page_number, paginator.limit, paginator.total)


class CatalogPagination(StandardPagination):
    page_size = 12


class ThreadPagination(StandardPagination):
    page_size = 20


class AdminPagination(StandardPagination):
    page_size = 20


class AdminMessagePagination(StandardPagination):
    page_size = 50
