"""
Article Editorial Lifecycle.

States:
    draft → pending → approved → published → archived
              ↓          ↓
           rejected      │
              ↓          ↓
            draft ← ─ ─ ─┘   (resubmission path from pending/approved/rejected)

Every transition names the role an actor must dominate. Some transitions are
also open to the article's author, and approved → published can be triggered
by the scheduler once ``scheduled_at`` has passed.

Usage:
    lifecycle = ArticleLifecycle()
    result = lifecycle.transition(article, ArticleStatus.APPROVED, actor=profile)
    if not result.ok:
        ...  # result.reason explains why, article is unchanged
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from django.db import models
from django.utils import timezone

from access_control.roles import Role, dominates

logger = logging.getLogger(__name__)


class ArticleStatus(models.TextChoices):
    """The six statuses an article can be in."""

    DRAFT = "draft", "Draft"
    PENDING = "pending", "Pending review"
    APPROVED = "approved", "Approved"
    PUBLISHED = "published", "Published"
    REJECTED = "rejected", "Rejected"
    ARCHIVED = "archived", "Archived"

    @classmethod
    def parse(cls, value: Any) -> Optional["ArticleStatus"]:
        """Return the status for ``value`` or None when it is not a status."""
        value = getattr(value, "value", value)
        if value in cls.values:
            return cls(value)
        return None


INITIAL_STATUSES = (ArticleStatus.DRAFT.value, ArticleStatus.PENDING.value)

# Statuses in which an author below editor may still change the article body.
AUTHOR_EDITABLE_STATUSES = (ArticleStatus.DRAFT.value, ArticleStatus.REJECTED.value)

LOCK_STRIPES = 64


@dataclass(frozen=True)
class TransitionRule:
    """Who may move an article along one edge of the lifecycle.

    ``required_role`` opens the edge to any actor dominating that role,
    ``author_role`` opens it to the article's author when they dominate that
    role, and ``system`` opens it to the scheduler.
    """
    required_role: Optional[str] = None
    author_role: Optional[str] = None
    system: bool = False
    sets_published_at: bool = False

    @property
    def minimum_role(self) -> Optional[str]:
        """Lowest role that can ever take this edge."""
        if self.author_role is not None:
            return self.author_role
        return self.required_role


TRANSITIONS: Dict[Tuple[str, str], TransitionRule] = {
    (ArticleStatus.DRAFT.value, ArticleStatus.PENDING.value): TransitionRule(author_role=Role.CONTRIBUTOR),
    (ArticleStatus.PENDING.value, ArticleStatus.APPROVED.value): TransitionRule(required_role=Role.EDITOR),
    (ArticleStatus.PENDING.value, ArticleStatus.REJECTED.value): TransitionRule(required_role=Role.EDITOR),
    (ArticleStatus.APPROVED.value, ArticleStatus.PUBLISHED.value): TransitionRule(
        required_role=Role.EDITOR, system=True, sets_published_at=True
    ),
    (ArticleStatus.PUBLISHED.value, ArticleStatus.ARCHIVED.value): TransitionRule(required_role=Role.EDITOR),
    (ArticleStatus.PENDING.value, ArticleStatus.DRAFT.value): TransitionRule(
        required_role=Role.EDITOR, author_role=Role.CONTRIBUTOR
    ),
    (ArticleStatus.APPROVED.value, ArticleStatus.DRAFT.value): TransitionRule(
        required_role=Role.EDITOR, author_role=Role.CONTRIBUTOR
    ),
    (ArticleStatus.REJECTED.value, ArticleStatus.DRAFT.value): TransitionRule(
        required_role=Role.EDITOR, author_role=Role.CONTRIBUTOR
    ),
}


def rule_for(current: Any, target: Any) -> Optional[TransitionRule]:
    """Return the rule for ``current`` → ``target`` or None if it is illegal."""
    source = ArticleStatus.parse(current)
    destination = ArticleStatus.parse(target)
    if source is None or destination is None:
        return None
    return TRANSITIONS.get((source.value, destination.value))


def valid_targets(current: Any) -> list[str]:
    """All statuses reachable in one step from ``current``."""
    source = ArticleStatus.parse(current)
    if source is None:
        return []
    return [to for (frm, to) in TRANSITIONS if frm == source.value]


def is_author(actor: Any, article: Any) -> bool:
    """True when ``actor`` (a profile) wrote ``article``."""
    user_id = getattr(actor, "user_id", None)
    author_id = getattr(article, "author_id", None)
    return user_id is not None and author_id is not None and str(user_id) == str(author_id)


def actor_satisfies(rule: TransitionRule, actor: Any, article: Any, system: bool = False) -> bool:
    """Check the actor requirement of ``rule``; an absent or suspended actor never passes."""
    if system:
        return rule.system
    if actor is None or not getattr(actor, "is_active", True):
        return False
    role = getattr(actor, "role", None)
    if rule.required_role is not None and dominates(role, rule.required_role):
        return True
    if rule.author_role is not None and is_author(actor, article):
        return dominates(role, rule.author_role)
    return False


@dataclass
class TransitionResult:
    """Outcome of a transition request; failures carry a reason."""
    ok: bool
    article: Any
    from_status: str
    to_status: str
    reason: str = ""
    denied: bool = False
    comment: str = ""

    @property
    def illegal(self) -> bool:
        return not self.ok and not self.denied


class ArticleLifecycle:
    """
    Applies lifecycle transitions to in-memory article objects.

    Articles are any object exposing ``pk``, ``status``, ``published_at`` and
    ``author_id``. Persistence is left to the caller. Requests for the same
    article are applied one at a time.
    """

    def __init__(self, stripes: int = LOCK_STRIPES):
        self._locks: Tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(max(1, stripes)))

    def _lock_for(self, article) -> threading.Lock:
        # Fixed pool: articles sharing a stripe also share a lock.
        key = getattr(article, "pk", None)
        if key is None:
            key = id(article)
        return self._locks[hash(key) % len(self._locks)]

    def check(self, article, target: Any, actor: Any = None, system: bool = False) -> Optional[TransitionResult]:
        """Return a failed result if the transition may not happen, else None."""
        current = getattr(article.status, "value", article.status)
        rule = rule_for(current, target)
        if rule is None:
            allowed = ", ".join(valid_targets(current)) or "none"
            return TransitionResult(
                ok=False,
                article=article,
                from_status=str(current),
                to_status=str(getattr(target, "value", target)),
                reason=f"Invalid transition from {current} to {getattr(target, 'value', target)}. "
                f"Valid targets: {allowed}",
            )
        if not actor_satisfies(rule, actor, article, system=system):
            who = "the scheduler" if system else f"role {getattr(actor, 'role', None)!s}"
            return TransitionResult(
                ok=False,
                article=article,
                from_status=str(current),
                to_status=ArticleStatus.parse(target).value,
                reason=f"{who} may not move an article from {current} to "
                f"{ArticleStatus.parse(target).value}",
                denied=True,
            )
        return None

    def transition(
        self,
        article,
        target: Any,
        actor: Any = None,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
        system: bool = False,
    ) -> TransitionResult:
        """
        Move ``article`` to ``target`` on behalf of ``actor``.

        Args:
            article: Article-like object, mutated in place on success
            target: Target status (ArticleStatus or string)
            actor: Profile requesting the change (None for the scheduler)
            comment: Review comment to attach to the result
            now: Clock override for published_at
            system: True when the scheduler triggers the transition

        Returns:
            TransitionResult; ``ok`` is False and the article untouched when
            the transition is illegal or the actor is not allowed to take it.
        """
        with self._lock_for(article):
            failure = self.check(article, target, actor=actor, system=system)
            if failure is not None:
                logger.warning(
                    "Article %s transition rejected: %s",
                    getattr(article, "pk", None),
                    failure.reason,
                )
                return failure

            current = getattr(article.status, "value", article.status)
            destination = ArticleStatus.parse(target)
            rule = rule_for(current, destination)

            article.status = destination.value
            if rule.sets_published_at and article.published_at is None:
                article.published_at = now or timezone.now()

            logger.info(
                "Article %s transitioned: %s → %s",
                getattr(article, "pk", None),
                current,
                destination.value,
            )
            return TransitionResult(
                ok=True,
                article=article,
                from_status=current,
                to_status=destination.value,
                comment=comment or "",
            )


__all__ = [
    "ArticleStatus",
    "INITIAL_STATUSES",
    "AUTHOR_EDITABLE_STATUSES",
    "TransitionRule",
    "TRANSITIONS",
    "TransitionResult",
    "ArticleLifecycle",
    "rule_for",
    "valid_targets",
    "actor_satisfies",
    "is_author",
]
