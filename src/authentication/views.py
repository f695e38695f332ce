"""Authentication endpoints (register, login, refresh, logout) plus profile and user management."""

import logging
from typing import Any

from asgiref.sync import async_to_sync
from django.contrib.auth import get_user_model
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from access_control.permissions import RoleRequired, capabilities
from access_control.roles import Role, dominates, level_of
from core.response import BaseAPIView, api_response
from .models import Profile
from .profiles import DjangoProfileStore, ProfileStoreError
from .resolver import get_request_profile
from .serializers import (
    ActiveUpdateSerializer,
    LoginSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    ResolvedProfileSerializer,
    RoleUpdateSerializer,
)
from .services import TokenService, record_login

logger = logging.getLogger(__name__)

User = get_user_model()


class RegisterView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Register a new user and return their stored profile."""
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return api_response(
            {"email": user.email, "profile": ProfileSerializer(user.profile).data},
            status=status.HTTP_201_CREATED,
        )


class LoginView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Authenticate, refresh last login and issue access + refresh tokens."""
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]
        record_login(user)
        access, refresh = TokenService.generate_tokens(user)
        return api_response({"access": access, "refresh": refresh})


class RefreshView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Exchange a valid refresh token for new access/refresh tokens."""
        refresh_token = request.data.get("refresh")
        if not refresh_token:
            raise AuthenticationFailed("Refresh token required")

        payload = TokenService.decode_token(refresh_token, expected_type="refresh")
        user = _get_active_user(payload.get("sub"))
        if not user:
            raise AuthenticationFailed("User not found or inactive")

        # Tokens minted before the last logout-all carry an older version.
        token_ver = payload.get("ver")
        if token_ver is None or token_ver != getattr(user, "token_version", 1):
            raise AuthenticationFailed("Invalid or revoked refresh token")

        access, new_refresh = TokenService.generate_tokens(user)
        return api_response({"access": access, "refresh": new_refresh})


class LogoutView(APIView):
    """Invalidate the current access token by blocklisting its jti."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Blocklist the bearer access token and return 204 No Content."""
        token = _get_bearer_token(request)
        if not token:
            return JsonResponse({"data": None, "errors": ["Missing token."]}, status=401)

        payload = TokenService.decode_token(token, expected_type="access")
        TokenService.block_token(payload["jti"], payload["exp"])
        # 204 responses must not include a body.
        return Response(status=status.HTTP_204_NO_CONTENT)


class LogoutAllView(APIView):
    """Invalidate all existing tokens for the current user across devices."""

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        """Increment token_version and blocklist the current access token."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")

        user = request.user
        user.token_version = (getattr(user, "token_version", 1) or 1) + 1
        user.save(update_fields=["token_version"])

        token = _get_bearer_token(request)
        if token:
            payload = TokenService.decode_token(token, expected_type="access")
            TokenService.block_token(payload["jti"], payload["exp"])

        return Response(status=status.HTTP_204_NO_CONTENT)


class MeView(BaseAPIView):
    permission_classes: list[Any] = []

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        """Return the caller's resolved profile and what it allows them to do."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        profile = get_request_profile(request)
        return api_response(
            {
                "email": request.user.email,
                "profile": ResolvedProfileSerializer(profile).data,
                "permissions": capabilities(profile),
            }
        )

    # noinspection PyMethodMayBeStatic
    def patch(self, request):
        """Update profile fields for the current user."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        serializer = ProfileUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        try:
            profile = async_to_sync(DjangoProfileStore().update_profile)(
                str(request.user.pk), serializer.validated_data
            )
        except ProfileStoreError as exc:
            raise ValidationError(str(exc)) from exc
        return api_response(ResolvedProfileSerializer(profile).data)

    # noinspection PyMethodMayBeStatic
    def delete(self, request):
        """Soft-delete the current user and blocklist the current access token."""
        if not request.user.is_authenticated:
            raise AuthenticationFailed("Authentication required")
        token = _get_bearer_token(request)
        if token:
            payload = TokenService.decode_token(token, expected_type="access")
            TokenService.block_token(payload["jti"], payload["exp"])
        request.user.is_active = False
        request.user.save(update_fields=["is_active"])
        # 204 responses must not include a body.
        return Response(status=status.HTTP_204_NO_CONTENT)


class ProfileListView(BaseAPIView):
    """User management listing, editors and above."""

    permission_classes = [RoleRequired]
    required_role = Role.EDITOR

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        profiles = Profile.objects.select_related("user").order_by("full_name")
        role = request.query_params.get("role")
        if role:
            profiles = profiles.filter(role=role)
        return api_response(ProfileSerializer(profiles, many=True).data)


class ProfileRoleView(BaseAPIView):
    """Change a stored profile's role without exceeding the caller's own level."""

    permission_classes = [RoleRequired]
    required_role = Role.EDITOR

    # noinspection PyMethodMayBeStatic
    def patch(self, request, pk):
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_role = serializer.validated_data["role"]

        actor = get_request_profile(request)
        target = _get_manageable_profile(request, pk, "role")
        if not dominates(actor.role, new_role):
            raise PermissionDenied()

        target.role = new_role
        target.save(update_fields=["role", "updated_at"])
        logger.info("%s changed role of %s to %s", request.user.email, target.user.email, new_role)
        return api_response(ProfileSerializer(target).data)


class ProfileActiveView(BaseAPIView):
    """Suspend or reinstate a profile; inactive profiles pass no role check."""

    permission_classes = [RoleRequired]
    required_role = Role.EDITOR

    # noinspection PyMethodMayBeStatic
    def patch(self, request, pk):
        serializer = ActiveUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        is_active = serializer.validated_data["is_active"]

        target = _get_manageable_profile(request, pk, "status")
        target.is_active = is_active
        target.save(update_fields=["is_active", "updated_at"])
        logger.info(
            "%s %s profile of %s",
            request.user.email,
            "reinstated" if is_active else "suspended",
            target.user.email,
        )
        return api_response(ProfileSerializer(target).data)


def _get_manageable_profile(request, pk, what: str) -> Profile:
    """Profile the caller may manage: not their own, and not above their level."""
    actor = get_request_profile(request)
    target = get_object_or_404(Profile.objects.select_related("user"), pk=pk)
    if str(target.user_id) == str(request.user.pk):
        raise PermissionDenied(f"You cannot change your own {what}.")
    if level_of(target.role) > level_of(actor.role):
        raise PermissionDenied()
    return target


def _get_active_user(user_id) -> User | None:
    """Retrieve an active user by id, or None if missing/inactive."""
    if not user_id:
        return None
    try:
        user = User.objects.get(id=user_id)
    except User.DoesNotExist:
        return None
    if not user.is_active:
        return None
    return user


def _get_bearer_token(request) -> str | None:
    """Extract the Bearer token from Authorization header if present."""
    auth_header = request.META.get("HTTP_AUTHORIZATION", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return None
