"""System checks for role-gated views."""

from django.core.checks import Error, register

from access_control.permissions import RoleRequired
from access_control.roles import level_of


@register()
def role_gated_views_declare_required_role(app_configs, **kwargs):
    """Ensure views protected by RoleRequired name a known role.

    ``required_role`` and every ``action_roles`` value must be a member of the
    role hierarchy; otherwise the view would deny every request.
    """
    errors: list[Error] = []

    # Import here to avoid circular imports at module load time.
    from articles.views import ManageArticleViewSet
    from authentication.views import ProfileActiveView, ProfileListView, ProfileRoleView

    gated_views = [ManageArticleViewSet, ProfileListView, ProfileRoleView, ProfileActiveView]

    for view_cls in gated_views:
        permission_classes = getattr(view_cls, "permission_classes", [])
        if RoleRequired not in permission_classes:
            continue
        required = getattr(view_cls, "required_role", None)
        if not level_of(required):
            errors.append(
                Error(
                    f"{view_cls.__name__} uses RoleRequired but does not define a valid required_role.",
                    obj=view_cls,
                    id="access_control.E001",
                )
            )
        for action_name, role in (getattr(view_cls, "action_roles", None) or {}).items():
            if not level_of(role):
                errors.append(
                    Error(
                        f"{view_cls.__name__}.action_roles[{action_name!r}] is not a known role.",
                        obj=view_cls,
                        id="access_control.E002",
                    )
                )

    return errors
