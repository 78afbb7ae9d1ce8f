"""URL configuration for the festival API and report exports."""

from django.urls import path

from . import views

app_name = "festival"

urlpatterns = [
    path("leaderboard/", views.LeaderboardView.as_view(), name="leaderboard"),
    path("merit-list/", views.MeritListView.as_view(), name="merit-list"),
    path("item-winners/", views.ItemWinnersView.as_view(), name="item-winners"),
    path("toppers/", views.CategoryToppersView.as_view(), name="toppers"),
    path("stats/", views.DashboardStatsView.as_view(), name="stats"),
    path("filtered/<str:consumer>/", views.FilteredEntitiesView.as_view(), name="filtered"),
    path("reports/<str:kind>.csv", views.export_report_csv, name="report-csv"),
]
