"""Root URL configuration for the Opiniku newsroom API."""
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView

from authentication.views import ProfileActiveView, ProfileListView, ProfileRoleView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("auth/", include("authentication.urls")),
    path("profiles/", ProfileListView.as_view(), name="profile-list"),
    path("profiles/<uuid:pk>/role/", ProfileRoleView.as_view(), name="profile-role"),
    path("profiles/<uuid:pk>/active/", ProfileActiveView.as_view(), name="profile-active"),
    path("", include("articles.urls")),
]
