"""Editorial role hierarchy.

Roles form a total order. Every authorization decision in the project goes
through :func:`level_of` / :func:`dominates`; no other module compares role
names directly.
"""

from typing import Any

from django.db import models


class Role(models.TextChoices):
    """Named editorial roles, highest privilege first."""

    SUPER_ADMIN = "super_admin", "Super admin"
    EDITOR = "editor", "Editor"
    JOURNALIST = "journalist", "Journalist"
    CONTRIBUTOR = "contributor", "Contributor"
    SUBSCRIBER = "subscriber", "Subscriber"


ROLE_HIERARCHY: dict[str, int] = {
    Role.SUPER_ADMIN.value: 5,
    Role.EDITOR.value: 4,
    Role.JOURNALIST.value: 3,
    Role.CONTRIBUTOR.value: 2,
    Role.SUBSCRIBER.value: 1,
}


def level_of(role: Any) -> int:
    """Return the numeric level of ``role``; unknown input maps to 0."""

    value = getattr(role, "value", role)
    if not isinstance(value, str):
        return 0
    return ROLE_HIERARCHY.get(value, 0)


def dominates(role_a: Any, role_b: Any) -> bool:
    """Return True if ``role_a`` is at least as privileged as ``role_b``.

    An unknown ``role_a`` has level 0 and therefore dominates no defined role.
    """

    return level_of(role_a) >= level_of(role_b)


def roles_at_or_below(role: Any) -> list[str]:
    """List the role values ``role`` dominates, highest first."""

    return [value for value, _ in Role.choices if level_of(role) > 0 and dominates(role, value)]


__all__ = ["Role", "ROLE_HIERARCHY", "level_of", "dominates", "roles_at_or_below"]
