"""Serializers for public article feeds and editorial article management."""

from rest_framework import serializers
from rest_framework.exceptions import PermissionDenied

from access_control.permissions import EDITORIAL_FIELDS, can_edit_article, can_set_editorial_fields
from authentication.resolver import get_request_profile
from .lifecycle import INITIAL_STATUSES, ArticleStatus
from .models import Article, ArticleReview, Category
from .services import create_article, update_article


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "slug", "description", "color_code", "icon", "sort_order"]
        read_only_fields = fields


class AuthorSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    full_name = serializers.SerializerMethodField()

    def get_full_name(self, user) -> str:
        profile = getattr(user, "profile", None)
        return getattr(profile, "full_name", "") or user.email.split("@")[0]


class PublicArticleListSerializer(serializers.ModelSerializer):
    """Card-sized article payload for public listings."""

    author = AuthorSerializer(read_only=True)
    category = CategorySerializer(read_only=True)

    class Meta:
        model = Article
        fields = [
            "id",
            "title",
            "slug",
            "excerpt",
            "featured_image_url",
            "author",
            "category",
            "is_featured",
            "is_breaking_news",
            "view_count",
            "like_count",
            "comment_count",
            "reading_time",
            "published_at",
        ]
        read_only_fields = fields


class PublicArticleDetailSerializer(PublicArticleListSerializer):
    class Meta(PublicArticleListSerializer.Meta):
        fields = PublicArticleListSerializer.Meta.fields + [
            "content",
            "meta_title",
            "meta_description",
            "meta_keywords",
        ]
        read_only_fields = fields


class ArticleReviewSerializer(serializers.ModelSerializer):
    reviewer = serializers.UUIDField(source="reviewer_id", read_only=True, allow_null=True)

    class Meta:
        model = ArticleReview
        fields = ["id", "reviewer", "from_status", "to_status", "comment", "created_at"]
        read_only_fields = fields


class ManageArticleSerializer(serializers.ModelSerializer):
    """Article as seen and edited in the back office.

    ``status`` is only writable on creation and only to an initial status;
    later changes go through the transition endpoint. Below editor, the
    placement fields are read-only and content is frozen once submitted.
    """

    author = AuthorSerializer(read_only=True)
    category = serializers.SlugRelatedField(slug_field="slug", queryset=Category.objects.filter(is_active=True))
    status = serializers.ChoiceField(choices=ArticleStatus.choices, required=False)
    slug = serializers.SlugField(max_length=280, required=False, allow_blank=True)

    class Meta:
        """Counters, timestamps and publication date are managed by the server."""
        model = Article
        fields = [
            "id",
            "title",
            "slug",
            "excerpt",
            "content",
            "featured_image_url",
            "author",
            "category",
            "status",
            "is_featured",
            "is_breaking_news",
            "scheduled_at",
            "meta_title",
            "meta_description",
            "meta_keywords",
            "reading_time",
            "view_count",
            "like_count",
            "comment_count",
            "published_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "author",
            "reading_time",
            "view_count",
            "like_count",
            "comment_count",
            "published_at",
            "created_at",
            "updated_at",
        ]

    def validate_status(self, value):
        if self.instance is not None:
            if value != self.instance.status:
                raise serializers.ValidationError("Use the transition endpoint to change status.")
            return value
        if value not in INITIAL_STATUSES:
            raise serializers.ValidationError(f"New articles start as one of: {', '.join(INITIAL_STATUSES)}.")
        return value

    def validate_slug(self, value):
        if not value:
            return value
        existing = Article.objects.filter(slug=value)
        if self.instance is not None:
            existing = existing.exclude(pk=self.instance.pk)
        if existing.exists():
            raise serializers.ValidationError("Slug already in use")
        return value

    def _changed_editorial_fields(self, attrs) -> list[str]:
        changed = []
        for name in EDITORIAL_FIELDS:
            if name not in attrs:
                continue
            if self.instance is not None:
                current = getattr(self.instance, name)
            else:
                current = Article._meta.get_field(name).get_default()
            if attrs[name] != current:
                changed.append(name)
        return changed

    def validate(self, attrs):
        request = self.context.get("request")
        profile = get_request_profile(request) if request is not None else None

        restricted = self._changed_editorial_fields(attrs)
        if restricted and not can_set_editorial_fields(profile):
            raise PermissionDenied(f"Only editors may set {', '.join(restricted)}.")

        if self.instance is not None and not can_edit_article(profile, self.instance):
            raise PermissionDenied(
                f"Articles in status {self.instance.status} can only be edited by editors; "
                "move the article back to draft first."
            )
        return attrs

    def create(self, validated_data):
        author = validated_data.pop("author")
        return create_article(author, **validated_data)

    def update(self, instance, validated_data):
        return update_article(instance, **validated_data)


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ArticleStatus.choices)
    comment = serializers.CharField(required=False, allow_blank=True, max_length=2000)


__all__ = [
    "CategorySerializer",
    "PublicArticleListSerializer",
    "PublicArticleDetailSerializer",
    "ArticleReviewSerializer",
    "ManageArticleSerializer",
    "TransitionSerializer",
]
