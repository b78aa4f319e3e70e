from datetime import timedelta

import pytest
from django.db import DatabaseError
from django.utils import timezone

from habits.models import Habit, TrackingEntry
from habits.services import ordering
from habits.tests.utils import bulk_create_entries

pytestmark = pytest.mark.django_db


@pytest.fixture()
def logged_in(client, user):
    client.force_login(user)
    return client


def _token(client):
    response = client.get("/dashboard/")
    assert response.status_code == 200
    return response.json()["csrf_token"]


def _reorder(client, payload):
    return client.post("/api/habits/reorder/", data=payload, content_type="application/json")


def test_dashboard__anonymous__is_rejected(client):
    response = client.get("/dashboard/")

    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "Not authenticated"}


def test_dashboard__returns_stats_chart_and_token(logged_in, make_habit):
    today = timezone.localdate()
    read = make_habit("Read")
    make_habit("Gym")
    bulk_create_entries(read, [today])

    data = logged_in.get("/dashboard/").json()

    assert data["ok"] is True
    assert data["csrf_token"]
    assert data["total_habits"] == 2
    assert data["completed_today"] == 1
    assert data["efficiency"] == 50
    assert [h["title"] for h in data["habits"]] == ["Read", "Gym"]
    assert data["chart"][-1]["date"] == today.isoformat()
    assert len(data["chart"]) == 7


def test_complete__token_mismatch__writes_nothing(logged_in, make_habit):
    habit = make_habit("Read")
    _token(logged_in)

    response = logged_in.post(
        "/dashboard/", {"action": "complete", "habit_id": habit.pk, "csrf_token": "forged"}
    )

    assert response.status_code == 403
    assert TrackingEntry.objects.count() == 0


def test_complete__records_today_and_flashes_success(logged_in, make_habit):
    habit = make_habit("Read")
    token = _token(logged_in)

    response = logged_in.post(
        "/dashboard/", {"action": "complete", "habit_id": habit.pk, "csrf_token": token}
    )

    assert response.status_code == 302
    assert response["Location"] == "/dashboard/"
    entry = TrackingEntry.objects.get(habit=habit)
    assert entry.track_date == timezone.localdate()
    assert entry.completed is True

    data = logged_in.get("/dashboard/").json()
    assert data["messages"] == [{"level": "success", "message": "Habit marked as completed"}]
    assert data["habits"][0]["done_today"] is True


def test_complete__other_users_habit__not_found(logged_in, other_user, make_habit):
    foreign = make_habit("Theirs", owner=other_user)
    token = _token(logged_in)

    response = logged_in.post(
        "/dashboard/", {"action": "complete", "habit_id": foreign.pk, "csrf_token": token}
    )

    assert response.status_code == 302
    assert TrackingEntry.objects.count() == 0
    messages = logged_in.get("/dashboard/").json()["messages"]
    assert messages == [{"level": "error", "message": "Habit not found"}]


def test_reorder__returns_canonical_order(logged_in, make_habit):
    a, b, c = (make_habit(t) for t in ("A", "B", "C"))
    token = _token(logged_in)

    response = _reorder(logged_in, {"order": [c.pk, "x", 0, c.pk, a.pk], "csrf_token": token})

    assert response.status_code == 200
    assert response.json() == {"ok": True, "order": [c.pk, a.pk, b.pk], "changed": True}

    again = _reorder(logged_in, {"order": [c.pk, a.pk], "csrf_token": token}).json()
    assert again == {"ok": True, "order": [c.pk, a.pk, b.pk], "changed": False}


def test_reorder__token_in_header_is_accepted(logged_in, make_habit):
    a, b = make_habit("A"), make_habit("B")
    token = _token(logged_in)

    response = logged_in.post(
        "/api/habits/reorder/",
        data={"order": [b.pk, a.pk]},
        content_type="application/json",
        HTTP_X_CSRF_TOKEN=token,
    )

    assert response.json()["order"] == [b.pk, a.pk]


def test_reorder__token_mismatch__is_forbidden_and_unchanged(logged_in, make_habit):
    a, b = make_habit("A"), make_habit("B")
    _token(logged_in)

    response = _reorder(logged_in, {"order": [b.pk, a.pk], "csrf_token": "nope"})

    assert response.status_code == 403
    assert response.json() == {"ok": False, "error": "Invalid CSRF token"}
    assert not Habit.objects.filter(sort_order__isnull=False).exists()


@pytest.mark.parametrize("payload", [{}, {"order": "1,2"}, {"order": {"1": 2}}])
def test_reorder__malformed_payload__is_rejected(logged_in, make_habit, payload):
    make_habit("A")
    token = _token(logged_in)

    response = _reorder(logged_in, {**payload, "csrf_token": token})

    assert response.status_code == 400
    assert response.json()["ok"] is False
    assert not Habit.objects.filter(sort_order__isnull=False).exists()


def test_reorder__storage_failure__reports_generic_error(logged_in, make_habit, monkeypatch):
    a, b = make_habit("A"), make_habit("B")
    token = _token(logged_in)

    def broken(user, order):
        raise DatabaseError("deadlock detected")

    monkeypatch.setattr(ordering, "_persist_order", broken)

    response = _reorder(logged_in, {"order": [b.pk, a.pk], "csrf_token": token})

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "Server error"}


def test_reorder__storage_failure__detail_behind_debug_flag(logged_in, make_habit, monkeypatch, settings):
    settings.HABITS_DEBUG_ERRORS = True
    a, b = make_habit("A"), make_habit("B")
    token = _token(logged_in)

    def broken(user, order):
        raise DatabaseError("deadlock detected")

    monkeypatch.setattr(ordering, "_persist_order", broken)

    response = _reorder(logged_in, {"order": [b.pk, a.pk], "csrf_token": token})

    assert response.status_code == 500
    assert response.json()["detail"] == "deadlock detected"


def test_history__json_page(logged_in, make_habit):
    today = timezone.localdate()
    habit = make_habit("Read")
    bulk_create_entries(habit, [today, today - timedelta(days=1)])

    data = logged_in.get("/habits/history/", {"id": habit.pk}).json()

    assert data["habit"]["title"] == "Read"
    assert data["total"] == 2
    assert [e["track_date"] for e in data["entries"]] == [
        today.isoformat(),
        (today - timedelta(days=1)).isoformat(),
    ]


def test_history__defaults_to_first_habit(logged_in, make_habit):
    make_habit("Second", sort_order=2)
    first = make_habit("First", sort_order=1)

    data = logged_in.get("/habits/history/").json()

    assert data["habit"]["id"] == first.pk


def test_history__csv_export(logged_in, make_habit):
    today = timezone.localdate()
    habit = make_habit("Read")
    bulk_create_entries(habit, [today])

    response = logged_in.get(
        "/habits/history/",
        {"id": habit.pk, "from": (today - timedelta(days=7)).isoformat(), "to": today.isoformat(), "export": "csv"},
    )

    assert response.status_code == 200
    assert response["Content-Type"] == "text/csv; charset=utf-8"
    assert response["Content-Disposition"] == f'attachment; filename="habit-{habit.pk}-history.csv"'
    body = b"".join(response.streaming_content).decode("utf-8")
    lines = body.splitlines()
    assert lines[0] == "\ufeffid,track_date,completed,created_at,updated_at"
    assert lines[1].startswith(f"{TrackingEntry.objects.get().pk},{today.isoformat()},1,")


def test_history__other_users_habit__not_found(logged_in, other_user, make_habit):
    foreign = make_habit("Theirs", owner=other_user)

    response = logged_in.get("/habits/history/", {"id": foreign.pk, "export": "csv"})

    assert response.status_code == 404


def test_history__bad_dates__rejected(logged_in, make_habit):
    habit = make_habit("Read")

    response = logged_in.get("/habits/history/", {"id": habit.pk, "from": "yesterday"})

    assert response.status_code == 400


def test_history__toggle_entry_via_ajax(logged_in, make_habit):
    habit = make_habit("Read")
    bulk_create_entries(habit, [timezone.localdate()])
    entry = TrackingEntry.objects.get()
    token = _token(logged_in)

    response = logged_in.post(
        "/habits/history/",
        {"action": "toggle", "habit_id": habit.pk, "entry_id": entry.pk, "csrf_token": token},
        HTTP_X_REQUESTED_WITH="XMLHttpRequest",
    )

    assert response.status_code == 200
    assert response.json()["entry"]["completed"] is False
    entry.refresh_from_db()
    assert entry.completed is False


def test_history__mark_today_redirects_back(logged_in, make_habit):
    habit = make_habit("Read")
    token = _token(logged_in)

    response = logged_in.post(
        "/habits/history/",
        {"action": "mark_today", "habit_id": habit.pk, "csrf_token": token},
    )

    assert response.status_code == 302
    assert response["Location"] == f"/habits/history/?id={habit.pk}"
    assert TrackingEntry.objects.filter(habit=habit, completed=True).count() == 1
