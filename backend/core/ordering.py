"""
Display-order persistence shared by every drag-and-drop admin list.

The admin UI sends the full (or partial) list of ids in their new visual
order; the position of each id becomes its ``display_order`` (0-based).
The update is all-or-nothing: rows are locked, every id is checked, and the
new positions are written with a single bulk update inside one transaction.
"""
import logging
import uuid

from django.db import transaction
from django.db.models import Model, QuerySet
from django.utils import timezone

from .exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def normalize_ids(ids):
    """Convert incoming ids to UUID objects, rejecting malformed and duplicate values"""
    if not ids:
        raise ValidationError('No items to reorder', field='ids')

    normalized = []
    seen = set()
    for raw in ids:
        try:
            value = raw if isinstance(raw, uuid.UUID) else uuid.UUID(str(raw))
        except (TypeError, ValueError, AttributeError):
            raise ValidationError(f'Invalid id: {raw}', field='ids')
        if value in seen:
            raise ValidationError(f'Duplicate id: {value}', field='ids')
        seen.add(value)
        normalized.append(value)
    return normalized


def reorder(model_or_queryset, ids, scope=None):
    """
    Persist the position of each id as its display_order.

    Args:
        model_or_queryset: Model class or queryset defining the collection
        ids: Ordered ids; index in this list becomes display_order
        scope: Optional callable receiving the locked rows; raises
            ValidationError if they do not form one logical collection

    Returns:
        Number of rows updated

    Raises:
        ValidationError: empty list, malformed or duplicate ids, scope mismatch
        NotFoundError: one or more ids are not in the collection
    """
    if isinstance(model_or_queryset, QuerySet):
        queryset = model_or_queryset
    elif isinstance(model_or_queryset, type) and issubclass(model_or_queryset, Model):
        queryset = model_or_queryset._default_manager.all()
    else:
        raise TypeError(f'Expected a model class or queryset, got {type(model_or_queryset).__name__}')

    ordered_ids = normalize_ids(ids)
    label = queryset.model._meta.verbose_name_plural

    with transaction.atomic():
        rows = {
            obj.pk: obj
            for obj in queryset.select_for_update().filter(pk__in=ordered_ids)
        }

        missing = [pk for pk in ordered_ids if pk not in rows]
        if missing:
            logger.warning(f"Reorder rejected: {len(missing)} {label} not found")
            raise NotFoundError(f'One or more {label} not found', missing=missing)

        if scope is not None:
            scope([rows[pk] for pk in ordered_ids])

        now = timezone.now()
        changed = []
        for position, pk in enumerate(ordered_ids):
            obj = rows[pk]
            obj.display_order = position
            obj.updated_at = now
            changed.append(obj)

        queryset.bulk_update(changed, ['display_order', 'updated_at'])

    logger.info(f"Reordered {len(changed)} {label}")
    return len(changed)
