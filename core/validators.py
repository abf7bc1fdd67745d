"""
Custom validators for list-valued model fields.
"""

import re

from django.core.exceptions import ValidationError


MATERIAL_PATTERN = re.compile(r'^[A-Za-z0-9+\- ]{1,30}$')


def validate_material_list(value):
    """
    Validate a list of filament material names.

    Each entry must be a short string such as "PLA", "PETG" or "PLA+".
    Duplicates are rejected so membership checks stay unambiguous.

    Raises:
        ValidationError: If the value is not a list of valid material names
    """
    if not isinstance(value, list):
        raise ValidationError(
            'Materials must be a list of strings.',
            code='materials_not_list'
        )

    for material in value:
        if not isinstance(material, str) or not MATERIAL_PATTERN.match(material):
            raise ValidationError(
                f'Invalid material name: {material!r}',
                code='invalid_material'
            )

    if len(set(value)) != len(value):
        raise ValidationError(
            'Materials cannot contain duplicates.',
            code='duplicate_material'
        )


def validate_tag_list(value):
    """Validate a list of model tags (non-empty strings, max 50 chars each)."""
    if not isinstance(value, list):
        raise ValidationError('Tags must be a list of strings.', code='tags_not_list')

    for tag in value:
        if not isinstance(tag, str) or not tag.strip() or len(tag) > 50:
            raise ValidationError(f'Invalid tag: {tag!r}', code='invalid_tag')
