"""Public article feeds, categories and the role-gated editorial back office."""

import logging
from typing import Any

from django.conf import settings
from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError

from access_control.permissions import RoleRequired, can_access
from access_control.roles import Role
from authentication.resolver import get_request_profile
from core.exceptions import TransitionRejected
from core.response import BaseAPIView, BaseViewSet, api_response
from .filters import ArticleFilters
from .lifecycle import ArticleStatus
from .models import Article, Category
from .serializers import (
    ArticleReviewSerializer,
    CategorySerializer,
    ManageArticleSerializer,
    PublicArticleDetailSerializer,
    PublicArticleListSerializer,
    TransitionSerializer,
)
from .services import apply_transition, dashboard_metrics, track_page_view

logger = logging.getLogger(__name__)


def _filters_from(request, **overrides) -> ArticleFilters:
    try:
        return ArticleFilters.from_query_params(request.query_params, **overrides)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


class PublicArticleViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, BaseViewSet):
    """Published articles in active categories, looked up by slug."""

    permission_classes: list[Any] = []
    serializer_class = PublicArticleListSerializer
    lookup_field = "slug"

    def get_queryset(self):
        return Article.objects.visible_to_public().select_related("author__profile", "category")

    def get_serializer_class(self):
        if self.action == "retrieve":
            return PublicArticleDetailSerializer
        return PublicArticleListSerializer

    def list(self, request, *args, **kwargs):
        """List published articles; ``category``, ``author``, ``limit`` and ``offset`` narrow it."""
        filters = _filters_from(request, status=ArticleStatus.PUBLISHED.value)
        if filters.limit is None:
            filters = ArticleFilters(
                status=filters.status,
                category=filters.category,
                author=filters.author,
                limit=settings.PUBLIC_PAGE_SIZE,
                offset=filters.offset,
            )
        articles = filters.apply(self.get_queryset())
        return api_response(self.get_serializer(articles, many=True).data)

    def retrieve(self, request, *args, **kwargs):
        """Return one published article and record the page view."""
        article = self.get_object()
        track_page_view(
            article,
            user=request.user,
            page_url=request.get_full_path(),
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
        )
        article.refresh_from_db(fields=["view_count"])
        return api_response(self.get_serializer(article).data)

    @action(detail=False, methods=["get"])
    def featured(self, request):
        articles = self.get_queryset().filter(is_featured=True).order_by("-published_at")
        return api_response(self.get_serializer(articles[: self._limit(request)], many=True).data)

    @action(detail=False, methods=["get"])
    def trending(self, request):
        articles = (
            self.get_queryset()
            .filter(view_count__gte=settings.TRENDING_MIN_VIEWS)
            .order_by("-view_count", "-published_at")
        )
        return api_response(self.get_serializer(articles[: self._limit(request)], many=True).data)

    @action(detail=False, methods=["get"])
    def breaking(self, request):
        articles = self.get_queryset().filter(is_breaking_news=True).order_by("-published_at")
        return api_response(self.get_serializer(articles[: self._limit(request)], many=True).data)

    @staticmethod
    def _limit(request) -> int:
        return _filters_from(request).limit or settings.PUBLIC_PAGE_SIZE


class CategoryListView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        """Active categories in display order."""
        categories = Category.objects.filter(is_active=True).order_by("sort_order", "name")
        return api_response(CategorySerializer(categories, many=True).data)


class ManageArticleViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    BaseViewSet,
):
    """Editorial article management.

    Contributors and journalists work on their own articles; editors and
    above see every article. Status changes go through ``transition``.
    """

    serializer_class = ManageArticleSerializer
    permission_classes = [RoleRequired]
    required_role = Role.CONTRIBUTOR
    action_roles = {
        "approval_queue": Role.EDITOR,
        "dashboard": Role.EDITOR,
    }

    def get_queryset(self):
        articles = Article.objects.select_related("author__profile", "category")
        if can_access(get_request_profile(self.request), Role.EDITOR):
            return articles
        return articles.filter(author=self.request.user)

    def list(self, request, *args, **kwargs):
        """List manageable articles; ``status``, ``category``, ``author``, ``limit`` and ``offset`` narrow it."""
        articles = _filters_from(request).apply(self.get_queryset())
        return api_response(self.get_serializer(articles, many=True).data)

    def perform_create(self, serializer):
        """Attach the current user as author on create."""
        serializer.save(author=self.request.user)

    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):
        """Move the article to another status on behalf of the caller."""
        article = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = apply_transition(
            article.pk,
            serializer.validated_data["status"],
            actor=get_request_profile(request),
            comment=serializer.validated_data.get("comment"),
        )
        if not result.ok:
            if result.denied:
                raise PermissionDenied(result.reason)
            raise TransitionRejected(result.reason)
        return api_response(self.get_serializer(result.article).data)

    @action(detail=True, methods=["get"])
    def reviews(self, request, pk=None):
        """Transition history of the article, newest first."""
        article = self.get_object()
        return api_response(ArticleReviewSerializer(article.reviews.order_by("-created_at", "-id"), many=True).data)

    @action(detail=False, methods=["get"], url_path="approval-queue")
    def approval_queue(self, request):
        """Articles waiting for review, oldest submission first."""
        articles = self.get_queryset().filter(status=ArticleStatus.PENDING).order_by("updated_at")
        return api_response(self.get_serializer(articles, many=True).data)

    @action(detail=False, methods=["get"])
    def dashboard(self, request):
        return api_response(dashboard_metrics(), status=status.HTTP_200_OK)


__all__ = ["PublicArticleViewSet", "CategoryListView", "ManageArticleViewSet"]
