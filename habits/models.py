from __future__ import annotations
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models


class Habit(models.Model):
    class Frequency(models.TextChoices):
        DAILY = "daily", "Daily"
        WEEKLY = "weekly", "Weekly"
        MONTHLY = "monthly", "Monthly"

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='habits',
    )
    title = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    frequency = models.CharField(
        max_length=10,
        choices=Frequency.choices,
        default=Frequency.DAILY,
    )
    # null sorts after every positioned habit
    sort_order = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "habits"
        indexes = [
            models.Index(fields=["owner", "sort_order"], name="habits_owner_sort_idx"),
        ]

    if TYPE_CHECKING:
        # Django dynamically injects this via related_name="entries"
        entries = None

    def __str__(self) -> str:
        return self.title


class TrackingEntry(models.Model):
    habit = models.ForeignKey(Habit, on_delete=models.CASCADE,
                              related_name="entries")
    track_date = models.DateField()
    completed = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "habit_tracking"
        constraints = [
            models.UniqueConstraint(fields=["habit", "track_date"], name="unique_entry_per_habit_per_day")
        ]
        ordering = ["-track_date", "-created_at"]
        verbose_name_plural = "tracking entries"

    def __str__(self) -> str:
        mark = "done" if self.completed else "missed"
        return f"{self.habit.title} @ {self.track_date} ({mark})"
