import pytest

from habits.models import Habit


@pytest.fixture()
def user(django_user_model):
    return django_user_model.objects.create_user(
        username="u1",
        password="pass12345",
        email="u1@example.com",
    )


@pytest.fixture()
def other_user(django_user_model):
    return django_user_model.objects.create_user(
        username="u2",
        password="pass12345",
        email="u2@example.com",
    )


@pytest.fixture()
def make_habit(user):
    def _make(title, owner=None, **kwargs):
        return Habit.objects.create(owner=owner or user, title=title, **kwargs)
    return _make


