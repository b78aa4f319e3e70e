import logging
from dataclasses import dataclass
from typing import Iterable, List

from django.db import transaction
from django.db.models import Case, F, IntegerField, Value, When

from habits.models import Habit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReorderResult:
    order: List[int]
    changed: bool


def canonical_queryset(user):
    """User's habits in canonical order: sort_order (nulls last), then id."""
    return Habit.objects.filter(owner=user).order_by(
        F("sort_order").asc(nulls_last=True), "id"
    )


def canonical_order(user) -> List[int]:
    return list(canonical_queryset(user).values_list("id", flat=True))


def _coerce_id(value):
    # bool is an int subclass; "true" is not an id
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        value = value.strip()
        if value.isdigit():
            return int(value)
    return None


def sanitize_order(raw: Iterable) -> List[int]:
    """
    Coerce to ints, drop non-positive and non-numeric values and duplicates.
    First-seen order is kept.
    """
    seen = set()
    result = []
    for value in raw:
        pk = _coerce_id(value)
        if pk is None or pk <= 0 or pk in seen:
            continue
        seen.add(pk)
        result.append(pk)
    return result


def merge_order(requested: List[int], owned: List[int]) -> List[int]:
    """
    Requested ids the user owns, in requested order, followed by the owned
    ids that were not mentioned, in their existing order.
    """
    owned_set = set(owned)
    head = [pk for pk in requested if pk in owned_set]
    mentioned = set(head)
    return head + [pk for pk in owned if pk not in mentioned]


def _persist_order(user, order: List[int]) -> int:
    whens = [When(pk=pk, then=Value(position)) for position, pk in enumerate(order, start=1)]
    return Habit.objects.filter(owner=user, pk__in=order).update(
        sort_order=Case(*whens, output_field=IntegerField())
    )


def reorder_habits(user, raw_order: Iterable) -> ReorderResult:
    requested = sanitize_order(raw_order)

    with transaction.atomic():
        owned = list(
            canonical_queryset(user).select_for_update().values_list("id", flat=True)
        )
        final = merge_order(requested, owned)
        if final == owned:
            return ReorderResult(order=owned, changed=False)

        updated = _persist_order(user, final)

    logger.info("Reordered %s habits for user %s", updated, user.pk)
    return ReorderResult(order=canonical_order(user), changed=True)
