"""
URL configuration for the habit dashboard.

- /graphql/              GraphQL API (behind Django's CSRF middleware)
- /dashboard/            dashboard feed (GET) and completion form (POST)
- /api/habits/reorder/   JSON reorder endpoint
- /habits/history/       history page, CSV export and entry actions
"""
from django.contrib import admin
from django.urls import path
from graphene_django.views import GraphQLView

from habits import views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('graphql/', GraphQLView.as_view(graphiql=True)),
    path("dashboard/", views.dashboard, name="dashboard"),
    path("api/habits/reorder/", views.reorder_habits, name="habit-reorder"),
    path("habits/history/", views.habit_history, name="habit-history"),
]
