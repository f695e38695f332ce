"""Permission gate: role predicates and the DRF permission class built on them."""

from typing import Any

from rest_framework import permissions

from articles.lifecycle import AUTHOR_EDITABLE_STATUSES, ArticleLifecycle, is_author
from .roles import Role, dominates

_lifecycle = ArticleLifecycle()


def can_access(profile: Any, required_role: Any) -> bool:
    """Return True if ``profile`` exists and its role dominates ``required_role``.

    A missing profile (not resolved yet, or the session ended) and a
    suspended profile always deny.
    """

    if profile is None or not getattr(profile, "is_active", True):
        return False
    return dominates(getattr(profile, "role", None), required_role)


def can_transition(profile: Any, article: Any, target_status: Any) -> bool:
    """Return True if the lifecycle allows ``profile`` to move ``article`` to ``target_status``."""

    if profile is None or not getattr(profile, "is_active", True):
        return False
    return _lifecycle.check(article, target_status, actor=profile) is None


def can_create_articles(profile: Any) -> bool:
    return can_access(profile, Role.CONTRIBUTOR)


def can_approve_articles(profile: Any) -> bool:
    return can_access(profile, Role.EDITOR)


def can_manage_users(profile: Any) -> bool:
    return can_access(profile, Role.EDITOR)


# Article fields that decide placement and timing on the public site.
EDITORIAL_FIELDS = ("is_featured", "is_breaking_news", "scheduled_at")


def can_set_editorial_fields(profile: Any) -> bool:
    return can_access(profile, Role.EDITOR)


def can_edit_article(profile: Any, article: Any) -> bool:
    """Return True if ``profile`` may change the content of ``article``.

    Editors may edit any article. Other contributors may only edit their
    own articles while they are a draft or were rejected, so that text
    under review or already published cannot change without a new review.
    """

    if can_access(profile, Role.EDITOR):
        return True
    if not can_access(profile, Role.CONTRIBUTOR) or not is_author(profile, article):
        return False
    return getattr(article.status, "value", article.status) in AUTHOR_EDITABLE_STATUSES


def capabilities(profile: Any) -> dict[str, bool]:
    """Named capability flags for clients deciding which actions to show."""

    return {
        "can_create_articles": can_create_articles(profile),
        "can_approve_articles": can_approve_articles(profile),
        "can_manage_users": can_manage_users(profile),
    }


class RoleRequired(permissions.BasePermission):
    """Allow the request when the caller's resolved profile dominates the view's role.

    Views declare ``required_role``; ``action_roles`` may raise or lower the
    requirement for individual ViewSet actions.
    """

    message = "You do not have permission to perform this action on this resource."

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        if not user or not getattr(user, "is_authenticated", False):
            return False

        required = self._required_role(view)
        if not required:
            return False

        # Imported lazily; the resolver pulls in the profile store and models.
        from authentication.resolver import get_request_profile

        return can_access(get_request_profile(request), required)

    @staticmethod
    def _required_role(view):
        action = getattr(view, "action", None)
        action_roles = getattr(view, "action_roles", None) or {}
        if action and action in action_roles:
            return action_roles[action]
        return getattr(view, "required_role", None)


__all__ = [
    "can_access",
    "can_transition",
    "can_create_articles",
    "can_approve_articles",
    "can_manage_users",
    "can_set_editorial_fields",
    "can_edit_article",
    "EDITORIAL_FIELDS",
    "capabilities",
    "RoleRequired",
]
