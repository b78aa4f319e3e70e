import logging

from django.db import IntegrityError, transaction

from habits.models import Habit, TrackingEntry

logger = logging.getLogger(__name__)


def get_owned_habit(user, habit_id) -> Habit:
    """Raises Habit.DoesNotExist for missing habits and for other users' habits alike."""
    return Habit.objects.get(pk=habit_id, owner=user)


def record_completion(user, habit_id, on_date):
    """
    Mark (habit, on_date) completed. Inserts the entry or flips an
    existing one to completed; calling it again changes nothing.

    Returns (entry, created).
    """
    habit = get_owned_habit(user, habit_id)

    try:
        with transaction.atomic():
            entry, created = TrackingEntry.objects.update_or_create(
                habit=habit,
                track_date=on_date,
                defaults={"completed": True},
            )
    except IntegrityError:
        # lost an insert race for the same day; the row exists now
        entry = TrackingEntry.objects.get(habit=habit, track_date=on_date)
        if not entry.completed:
            entry.completed = True
            entry.save(update_fields=["completed", "updated_at"])
        created = False

    if created:
        logger.info("Habit %s completed on %s", habit.pk, on_date)
    return entry, created


def get_owned_entry(user, entry_id) -> TrackingEntry:
    return TrackingEntry.objects.select_related("habit").get(pk=entry_id, habit__owner=user)


def toggle_entry(user, entry_id) -> TrackingEntry:
    entry = get_owned_entry(user, entry_id)
    entry.completed = not entry.completed
    entry.save(update_fields=["completed", "updated_at"])
    return entry


def delete_entry(user, entry_id) -> int:
    entry = get_owned_entry(user, entry_id)
    entry_pk = entry.pk
    entry.delete()
    return entry_pk
