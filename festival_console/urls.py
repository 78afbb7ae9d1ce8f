"""URL configuration for festival_console project."""
from django.urls import include, path

urlpatterns = [
    path('festival/', include('festival.urls')),
]
