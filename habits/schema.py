import graphene
from django.contrib.auth import get_user_model
from django.db.models import Q
from django.utils import timezone
from graphene_django import DjangoObjectType

from .forms import HabitForm
from .models import Habit, TrackingEntry
from habits.services import habit_stats, history, ordering, tracking
from .services.dashboard import build_dashboard


def _require_user(info):
    user = info.context.user
    if user.is_anonymous:
        raise Exception("Authentication required")
    return user


class HabitType(DjangoObjectType):
    total_completions = graphene.Int()
    completed_today = graphene.Boolean()
    last_7_days_count = graphene.Int()
    current_streak = graphene.Int()
    best_streak = graphene.Int()

    class Meta:
        model = Habit
        fields = ("id", "title", "description", "frequency", "sort_order",
                  "created_at", "updated_at", "entries")
        convert_choices_to_enum = False

    def resolve_total_completions(self, info):
        return habit_stats.total_completions(self)

    def resolve_completed_today(self, info):
        return habit_stats.completed_today(self)

    def resolve_last_7_days_count(self, info):
        return habit_stats.last_7_days_count(self)

    def resolve_current_streak(self, info):
        return habit_stats.current_streak(self)

    def resolve_best_streak(self, info):
        return habit_stats.best_streak(self)


class TrackingEntryType(DjangoObjectType):
    class Meta:
        model = TrackingEntry
        fields = ("id", "habit", "track_date", "completed", "created_at", "updated_at")


class UserType(DjangoObjectType):
    class Meta:
        model = get_user_model()
        fields = ("id", "username", "email")


class HabitSummaryType(graphene.ObjectType):
    id = graphene.ID()
    title = graphene.String()
    description = graphene.String()
    frequency = graphene.String()
    sort_order = graphene.Int()
    done_today = graphene.Boolean()
    next_available = graphene.Date()
    current_streak = graphene.Int()
    best_streak = graphene.Int()
    last_completed = graphene.Date()


class ChartPointType(graphene.ObjectType):
    date = graphene.Date()
    value = graphene.Float()
    total = graphene.Int()
    completed = graphene.Int()


class NotificationType(graphene.ObjectType):
    id = graphene.String()
    type = graphene.String()
    title = graphene.String()
    message = graphene.String()
    hint = graphene.String()
    link = graphene.String()


class DashboardType(graphene.ObjectType):
    today = graphene.Date()
    total_habits = graphene.Int()
    completed_today = graphene.Int()
    missed_today = graphene.Int()
    efficiency = graphene.Int()
    longest_streak = graphene.Int()
    habits = graphene.List(HabitSummaryType)
    chart = graphene.List(ChartPointType)
    predicted = graphene.Float()
    predicted_date = graphene.Date()
    notifications = graphene.List(NotificationType)


class HistoryPageType(graphene.ObjectType):
    habit = graphene.Field(HabitType)
    entries = graphene.List(TrackingEntryType)
    total = graphene.Int()
    page = graphene.Int()
    num_pages = graphene.Int()
    page_size = graphene.Int()
    completed = graphene.Int()
    efficiency = graphene.Int()


class Query(graphene.ObjectType):
    me = graphene.Field(UserType)
    habits = graphene.List(
        HabitType,
        query=graphene.String(required=False),
        frequency=graphene.String(required=False),
    )
    habit = graphene.Field(HabitType, id=graphene.ID(required=True))
    dashboard = graphene.Field(DashboardType, date=graphene.Date(required=False))
    habit_history = graphene.Field(
        HistoryPageType,
        id=graphene.ID(required=True),
        date_from=graphene.Date(required=False),
        date_to=graphene.Date(required=False),
        page=graphene.Int(required=False),
        page_size=graphene.Int(required=False),
    )

    def resolve_habits(self, info, query=None, frequency=None):
        user = info.context.user
        if user.is_anonymous:
            return Habit.objects.none()

        qs = ordering.canonical_queryset(user)
        if query:
            qs = qs.filter(Q(title__icontains=query) | Q(description__icontains=query))
        if frequency:
            qs = qs.filter(frequency=frequency)

        qs = habit_stats.with_habit_stats(qs).prefetch_related("entries")
        return qs

    def resolve_habit(self, info, id):
        user = _require_user(info)

        qs = habit_stats.with_habit_stats(
            Habit.objects.filter(owner=user)
        ).prefetch_related("entries")
        return qs.get(pk=id)

    def resolve_dashboard(self, info, date=None):
        user = _require_user(info)
        return build_dashboard(user, date or timezone.localdate())

    def resolve_habit_history(self, info, id, date_from=None, date_to=None, page=1, page_size=None):
        user = _require_user(info)
        default_from, default_to = history.default_range(timezone.localdate())
        return history.history_page(
            user, id, date_from or default_from, date_to or default_to,
            page=page, page_size=page_size,
        )

    def resolve_me(self, info):
        user = info.context.user
        return None if user.is_anonymous else user


class CreateHabit(graphene.Mutation):
    class Arguments:
        title = graphene.String(required=True)
        description = graphene.String(required=False)
        frequency = graphene.String(required=False)

    habit = graphene.Field(HabitType)

    def mutate(self, info, title, description="", frequency=Habit.Frequency.DAILY):
        user = _require_user(info)

        form = HabitForm(data={"title": title, "description": description or "", "frequency": frequency})
        if not form.is_valid():
            raise Exception(form.errors.as_text())
        form.instance.owner = user
        habit = form.save()
        return CreateHabit(habit=habit)


class UpdateHabit(graphene.Mutation):
    class Arguments:
        id = graphene.ID(required=True)
        title = graphene.String(required=False)
        description = graphene.String(required=False)
        frequency = graphene.String(required=False)

    habit = graphene.Field(HabitType)

    def mutate(self, info, id, title=None, description=None, frequency=None):
        user = _require_user(info)

        habit = Habit.objects.get(pk=id, owner=user)
        data = {
            "title": habit.title if title is None else title,
            "description": habit.description if description is None else description,
            "frequency": habit.frequency if frequency is None else frequency,
        }
        form = HabitForm(data=data, instance=habit)
        if not form.is_valid():
            raise Exception(form.errors.as_text())
        return UpdateHabit(habit=form.save())


class DeleteHabit(graphene.Mutation):
    class Arguments:
        id = graphene.ID(required=True)

    ok = graphene.Boolean(required=True)
    deleted_id = graphene.ID(required=True)

    def mutate(self, info, id):
        user = _require_user(info)

        habit = Habit.objects.get(pk=id, owner=user)
        habit.delete()
        return DeleteHabit(ok=True, deleted_id=id)


class CompleteHabit(graphene.Mutation):
    class Arguments:
        habit_id = graphene.ID(required=True)
        date = graphene.Date(required=False)

    entry = graphene.Field(TrackingEntryType)
    created = graphene.Boolean(required=True)
    habit = graphene.Field(HabitType)

    @classmethod
    def mutate(cls, root, info, habit_id, date=None):
        user = _require_user(info)

        entry, created = tracking.record_completion(user, habit_id, date or timezone.localdate())
        return cls(entry=entry, created=created, habit=entry.habit)


class ReorderHabits(graphene.Mutation):
    class Arguments:
        order = graphene.List(graphene.ID, required=True)

    ok = graphene.Boolean(required=True)
    order = graphene.List(graphene.ID)
    changed = graphene.Boolean(required=True)

    def mutate(self, info, order):
        user = _require_user(info)

        result = ordering.reorder_habits(user, order)
        return ReorderHabits(ok=True, order=result.order, changed=result.changed)


class ToggleEntry(graphene.Mutation):
    class Arguments:
        id = graphene.ID(required=True)

    entry = graphene.Field(TrackingEntryType)

    def mutate(self, info, id):
        user = _require_user(info)
        return ToggleEntry(entry=tracking.toggle_entry(user, id))


class DeleteEntry(graphene.Mutation):
    class Arguments:
        id = graphene.ID(required=True)

    ok = graphene.Boolean(required=True)
    deleted_id = graphene.ID(required=True)

    def mutate(self, info, id):
        user = _require_user(info)
        tracking.delete_entry(user, id)
        return DeleteEntry(ok=True, deleted_id=id)


class Mutation(graphene.ObjectType):
    create_habit = CreateHabit.Field()
    update_habit = UpdateHabit.Field()
    delete_habit = DeleteHabit.Field()
    complete_habit = CompleteHabit.Field()
    reorder_habits = ReorderHabits.Field()
    toggle_entry = ToggleEntry.Field()
    delete_entry = DeleteEntry.Field()
