from habits.models import Habit, TrackingEntry


def bulk_create_entries(habit: Habit, dates, completed=True):
    TrackingEntry.objects.bulk_create(
        [TrackingEntry(habit=habit, track_date=d, completed=completed) for d in dates]
    )
