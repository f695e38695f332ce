"""Routing for public article feeds, categories and article management."""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import CategoryListView, ManageArticleViewSet, PublicArticleViewSet

router = DefaultRouter()
router.register(r"articles", PublicArticleViewSet, basename="article")
router.register(r"manage/articles", ManageArticleViewSet, basename="manage-article")

urlpatterns = [
    path("categories/", CategoryListView.as_view(), name="category-list"),
    path("", include(router.urls)),
]
