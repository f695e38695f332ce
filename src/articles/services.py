"""Article store operations: creation, lifecycle transitions, scheduling and analytics."""

import logging
import math
import re
from typing import Any, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Count, F
from django.utils import timezone
from django.utils.html import strip_tags
from django.utils.text import slugify

from .lifecycle import ArticleLifecycle, ArticleStatus, TransitionResult
from .models import Article, ArticleReview, PageView

logger = logging.getLogger(__name__)

lifecycle = ArticleLifecycle()

_WORD_RE = re.compile(r"\w+", re.UNICODE)


def estimate_reading_time(content: str, words_per_minute: Optional[int] = None) -> int:
    """Minutes needed to read ``content``; at least one."""

    wpm = words_per_minute or getattr(settings, "ARTICLE_WORDS_PER_MINUTE", 200)
    words = len(_WORD_RE.findall(strip_tags(content or "")))
    return max(1, math.ceil(words / wpm))


def unique_slug(title: str, exclude_pk: Any = None) -> str:
    """Slugify ``title`` and add a numeric suffix until no other article uses it."""

    max_length = Article._meta.get_field("slug").max_length
    base = slugify(title)[: max_length - 8].strip("-") or "article"
    candidate = base
    suffix = 2
    existing = Article.objects.all()
    if exclude_pk is not None:
        existing = existing.exclude(pk=exclude_pk)
    while existing.filter(slug=candidate).exists():
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def create_article(author, **fields) -> Article:
    """Insert a new article for ``author``; slug and reading time are derived when absent."""

    status = ArticleStatus.parse(fields.pop("status", ArticleStatus.DRAFT)) or ArticleStatus.DRAFT
    article = Article(author=author, status=status.value, **fields)
    if not article.slug:
        article.slug = unique_slug(article.title)
    article.reading_time = estimate_reading_time(article.content)
    article.save()
    logger.info("Article %s created by %s as %s", article.pk, author.pk, article.status)
    return article


def update_article(article: Article, **fields) -> Article:
    """Apply editable field changes; status is only changed through transitions."""

    fields.pop("status", None)
    fields.pop("published_at", None)
    for name, value in fields.items():
        setattr(article, name, value)
    if "content" in fields:
        article.reading_time = estimate_reading_time(article.content)
    if "slug" in fields and not article.slug:
        article.slug = unique_slug(article.title, exclude_pk=article.pk)
    article.save()
    return article


def apply_transition(
    article_id: Any,
    target: Any,
    actor: Any = None,
    comment: Optional[str] = None,
    system: bool = False,
    now=None,
) -> TransitionResult:
    """Transition a stored article, locking its row for the duration.

    The review row is written in the same transaction as the status change.
    Raises ``Article.DoesNotExist`` for an unknown id; lifecycle failures come
    back as an unsuccessful result and leave the row untouched.
    """

    with transaction.atomic():
        article = Article.objects.select_for_update().get(pk=article_id)
        result = lifecycle.transition(
            article,
            target,
            actor=actor,
            comment=comment,
            now=now,
            system=system,
        )
        if not result.ok:
            return result

        article.save(update_fields=["status", "published_at", "updated_at"])
        ArticleReview.objects.create(
            article=article,
            reviewer_id=None if actor is None else getattr(actor, "user_id", None),
            from_status=result.from_status,
            to_status=result.to_status,
            comment=result.comment,
        )
        return result


def publish_due_articles(now=None) -> list[Article]:
    """Publish approved articles whose ``scheduled_at`` has passed."""

    now = now or timezone.now()
    due = list(
        Article.objects.filter(
            status=ArticleStatus.APPROVED,
            scheduled_at__isnull=False,
            scheduled_at__lte=now,
        ).values_list("pk", flat=True)
    )
    published: list[Article] = []
    for pk in due:
        try:
            result = apply_transition(pk, ArticleStatus.PUBLISHED, system=True, now=now)
        except Article.DoesNotExist:
            continue
        if result.ok:
            published.append(result.article)
    if published:
        logger.info("Published %d scheduled article(s)", len(published))
    return published


def record_view(article: Article) -> None:
    Article.objects.filter(pk=article.pk).update(view_count=F("view_count") + 1)


def track_page_view(article: Article, user=None, page_url: str = "", user_agent: str = "") -> None:
    """Write one page-view row and bump the counter; analytics failures are only logged."""

    try:
        with transaction.atomic():
            PageView.objects.create(
                article=article,
                user=user if getattr(user, "is_authenticated", False) else None,
                page_url=page_url[:500],
                user_agent=user_agent[:500],
            )
            record_view(article)
    except DatabaseError:
        logger.exception("Failed to record page view for article %s", article.pk)


def dashboard_metrics() -> dict[str, Any]:
    """Article counts per status plus total views, for the editorial dashboard."""

    counts = {status: 0 for status in ArticleStatus.values}
    for row in Article.objects.values("status").annotate(total=Count("id")).order_by():
        counts[row["status"]] = row["total"]
    return {
        "articles_by_status": counts,
        "total_articles": sum(counts.values()),
        "total_views": PageView.objects.count(),
        "pending_approvals": counts[ArticleStatus.PENDING.value],
    }


__all__ = [
    "lifecycle",
    "estimate_reading_time",
    "unique_slug",
    "create_article",
    "update_article",
    "apply_transition",
    "publish_due_articles",
    "record_view",
    "track_page_view",
    "dashboard_metrics",
]
