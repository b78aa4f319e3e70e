import logging
from dataclasses import asdict

from django.conf import settings
from django.contrib import messages
from django.db import DatabaseError
from django.http import JsonResponse, StreamingHttpResponse
from django.shortcuts import redirect
from django.urls import reverse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST

from habits.context import RequestContext
from habits.forms import CompleteHabitForm, EntryActionForm, HistoryFilterForm, ReorderForm
from habits.models import Habit, TrackingEntry
from habits.security import json_body, json_error, login_required_json, session_token_required
from habits.services import history, ordering, tracking
from habits.services.dashboard import build_dashboard

logger = logging.getLogger(__name__)


def server_error(exc):
    extra = {"detail": str(exc)} if getattr(settings, "HABITS_DEBUG_ERRORS", False) else {}
    return json_error("Server error", status=500, **extra)


def serialize_entry(entry: TrackingEntry) -> dict:
    return {
        "id": entry.pk,
        "track_date": entry.track_date,
        "completed": entry.completed,
        "created_at": entry.created_at,
        "updated_at": entry.updated_at,
    }


def _flash_messages(request):
    return [{"level": m.level_tag, "message": str(m)} for m in messages.get_messages(request)]


@csrf_exempt
@require_http_methods(["GET", "POST"])
@login_required_json
@session_token_required
def dashboard(request):
    ctx = RequestContext.from_request(request)
    if request.method == "POST":
        return _complete_habit(request, ctx)

    data = build_dashboard(ctx.user, ctx.today)
    payload = asdict(data)
    payload.update({
        "ok": True,
        "csrf_token": ctx.csrf_token,
        "messages": _flash_messages(request),
    })
    return JsonResponse(payload)


def _complete_habit(request, ctx: RequestContext):
    form = CompleteHabitForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Invalid request")
        return redirect("dashboard")

    habit_id = form.cleaned_data["habit_id"]
    try:
        tracking.record_completion(ctx.user, habit_id, ctx.today)
    except Habit.DoesNotExist:
        messages.error(request, "Habit not found")
    except DatabaseError:
        logger.exception("Could not track habit %s", habit_id)
        messages.error(request, "Unable to track habit")
    else:
        messages.success(request, "Habit marked as completed")
    return redirect("dashboard")


@csrf_exempt
@require_POST
@login_required_json
@session_token_required
def reorder_habits(request):
    try:
        payload = json_body(request)
    except ValueError:
        return json_error("Invalid payload")

    form = ReorderForm({"order": payload.get("order")})
    if not form.is_valid():
        return json_error("Invalid payload", errors=form.errors.get_json_data())

    ctx = RequestContext.from_request(request)
    try:
        result = ordering.reorder_habits(ctx.user, form.cleaned_data["order"])
    except DatabaseError as exc:
        logger.exception("Reorder failed for user %s", ctx.user.pk)
        return server_error(exc)

    return JsonResponse({"ok": True, "order": result.order, "changed": result.changed})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@login_required_json
@session_token_required
def habit_history(request):
    ctx = RequestContext.from_request(request)
    if request.method == "POST":
        return _entry_action(request, ctx)

    form = HistoryFilterForm.from_query(request.GET)
    if not form.is_valid():
        return json_error("Invalid filter", errors=form.errors.get_json_data())

    habit_id = form.cleaned_data["id"]
    if habit_id is None:
        # no id: fall back to the first habit in canonical order
        habit_id = ordering.canonical_queryset(ctx.user).values_list("id", flat=True).first()
        if habit_id is None:
            return JsonResponse({"ok": True, "habit": None, "entries": [], "total": 0})

    default_from, default_to = history.default_range(ctx.today)
    date_from = form.cleaned_data["date_from"] or default_from
    date_to = form.cleaned_data["date_to"] or default_to

    try:
        if form.cleaned_data["export"] == "csv":
            entries = history.history_entries(ctx.user, habit_id, date_from, date_to)
            response = StreamingHttpResponse(
                history.export_rows(entries), content_type="text/csv; charset=utf-8"
            )
            response["Content-Disposition"] = f'attachment; filename="habit-{habit_id}-history.csv"'
            return response

        page = history.history_page(
            ctx.user, habit_id, date_from, date_to, page=form.cleaned_data["page"] or 1
        )
    except Habit.DoesNotExist:
        return json_error("Habit not found", status=404)
    except DatabaseError as exc:
        logger.exception("History query failed for habit %s", habit_id)
        return server_error(exc)

    return JsonResponse({
        "ok": True,
        "habit": {"id": page.habit.pk, "title": page.habit.title, "frequency": page.habit.frequency},
        "from": date_from,
        "to": date_to,
        "entries": [serialize_entry(e) for e in page.entries],
        "total": page.total,
        "page": page.page,
        "num_pages": page.num_pages,
        "page_size": page.page_size,
        "completed": page.completed,
        "efficiency": page.efficiency,
    })


def _entry_action(request, ctx: RequestContext):
    form = EntryActionForm(request.POST)
    if not form.is_valid():
        return json_error("Invalid request", errors=form.errors.get_json_data())

    action = form.cleaned_data["action"]
    habit_id = form.cleaned_data["habit_id"]
    entry_id = form.cleaned_data["entry_id"]
    try:
        tracking.get_owned_habit(ctx.user, habit_id)
        if action == "toggle":
            entry = tracking.toggle_entry(ctx.user, entry_id)
            result = {"message": "Entry updated", "entry": serialize_entry(entry)}
        elif action == "delete":
            result = {"message": "Entry deleted", "entry_id": tracking.delete_entry(ctx.user, entry_id)}
        else:
            entry, _ = tracking.record_completion(ctx.user, habit_id, ctx.today)
            result = {"message": "Marked today completed", "entry": serialize_entry(entry)}
    except (Habit.DoesNotExist, TrackingEntry.DoesNotExist):
        return json_error("Not found", status=404)
    except DatabaseError as exc:
        logger.exception("History action %s failed for habit %s", action, habit_id)
        return server_error(exc)

    if not ctx.wants_json:
        messages.success(request, result["message"])
        return redirect(f"{reverse('habit-history')}?id={habit_id}")
    return JsonResponse({"ok": True, **result})
