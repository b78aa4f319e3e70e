from django.contrib import admin

from .models import Habit, TrackingEntry


@admin.register(Habit)
class HabitAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "frequency", "sort_order", "created_at")
    list_filter = ("frequency",)
    search_fields = ("title", "description")


@admin.register(TrackingEntry)
class TrackingEntryAdmin(admin.ModelAdmin):
    list_display = ("habit", "track_date", "completed", "updated_at")
    list_filter = ("completed",)
    date_hierarchy = "track_date"
