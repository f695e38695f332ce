"""Serializers for authentication flows (register, login) and profiles."""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from access_control.roles import Role
from .models import Profile
from .services import authenticate_credentials, register_user

User = get_user_model()


class RegisterSerializer(serializers.Serializer):
    """Validate and create a user with a subscriber profile."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    repeat_password = serializers.CharField(write_only=True, min_length=8)
    full_name = serializers.CharField(required=True, allow_blank=False, max_length=255)

    @staticmethod
    def validate_email(value):
        """Ensure email is unique before creation."""
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email already in use")
        return value

    def validate(self, attrs):
        """Ensure provided passwords match before creation."""
        if attrs.get("password") != attrs.get("repeat_password"):
            raise serializers.ValidationError("Passwords do not match")
        return attrs

    def create(self, validated_data):
        return register_user(
            validated_data["email"],
            validated_data["password"],
            validated_data["full_name"],
        )


class LoginSerializer(serializers.Serializer):
    """Authenticate a user via email/password using bcrypt verification."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        """Authenticate credentials and attach the user to validated_data."""
        attrs["user"] = authenticate_credentials(attrs.get("email"), attrs.get("password"))
        return attrs


class ResolvedProfileSerializer(serializers.Serializer):
    """Read-only payload for a resolved (stored or fallback) profile."""

    id = serializers.CharField()
    user_id = serializers.CharField()
    full_name = serializers.CharField()
    role = serializers.CharField()
    bio = serializers.CharField()
    avatar_url = serializers.CharField()
    phone = serializers.CharField()
    address = serializers.CharField()
    is_active = serializers.BooleanField()
    email_verified = serializers.BooleanField()
    last_login_at = serializers.DateTimeField(allow_null=True)
    is_fallback = serializers.BooleanField()


class ProfileSerializer(serializers.ModelSerializer):
    """Stored profile as listed in user management."""

    email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        """Expose identity, role and contact fields; everything is read-only here."""
        model = Profile
        fields = [
            "id",
            "user",
            "email",
            "full_name",
            "role",
            "bio",
            "avatar_url",
            "phone",
            "address",
            "is_active",
            "email_verified",
            "last_login_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.Serializer):
    """Patchable fields for /auth/me updates."""

    full_name = serializers.CharField(required=False, allow_blank=False, max_length=255)
    bio = serializers.CharField(required=False, allow_blank=True)
    avatar_url = serializers.URLField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    address = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        """Reject email/role changes explicitly instead of ignoring them."""
        initial = getattr(self, "initial_data", {})
        if "email" in initial:
            raise serializers.ValidationError("Email cannot be updated via this endpoint")
        if "role" in initial:
            raise serializers.ValidationError("Role cannot be updated via this endpoint")
        if not attrs:
            raise serializers.ValidationError("No profile fields provided")
        return attrs


class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Role.choices)


class ActiveUpdateSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()
