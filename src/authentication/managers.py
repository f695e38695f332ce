"""Custom user manager handling bcrypt hashing, verification and profile creation."""

import uuid

import bcrypt
from django.conf import settings
from django.contrib.auth.base_user import BaseUserManager
from django.db import transaction


class UserManager(BaseUserManager):
    """Manager to create users with bcrypt password hashes."""

    use_in_migrations = True

    def _create_user(self, email: str, password: str, full_name: str = "", **extra_fields):
        if not email:
            raise ValueError("The Email must be set")
        email = self.normalize_email(email)
        role = extra_fields.pop("role", None) or getattr(settings, "DEFAULT_PROFILE_ROLE", "subscriber")
        with transaction.atomic(using=self._db):
            user = self.model(id=uuid.uuid4(), email=email, **extra_fields)
            user.password_hash = self.hash_password(password)
            user.save(using=self._db)
            self._create_profile(user, full_name or email.split("@")[0], role)
        return user

    @staticmethod
    def _create_profile(user, full_name: str, role: str):
        from .models import Profile

        return Profile.objects.create(
            user=user,
            full_name=full_name,
            role=role,
            is_active=True,
            email_verified=False,
        )

    def create_user(self, email: str, password: str | None = None, **extra_fields):
        """Create a regular user (and its subscriber profile) with a bcrypt-hashed password."""
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        if password is None:
            raise ValueError("Password must be provided")
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email: str, password: str, **extra_fields):
        """Create a superuser ensuring staff/superuser flags and a super_admin profile."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)
        extra_fields.setdefault("role", "super_admin")
        if not extra_fields.get("is_staff"):
            raise ValueError("Superuser must have is_staff=True.")
        if not extra_fields.get("is_superuser"):
            raise ValueError("Superuser must have is_superuser=True.")
        return self._create_user(email, password, **extra_fields)

    @staticmethod
    def hash_password(raw_password: str) -> str:
        """Hash a raw password using bcrypt and return the utf-8 string."""
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(raw_password.encode(), salt)
        return hashed.decode()

    @staticmethod
    def verify_password(user, raw_password: str) -> bool:
        """Verify raw password against stored bcrypt hash."""

        if not user.password_hash:
            return False
        return bcrypt.checkpw(raw_password.encode(), user.password_hash.encode("utf-8"))


__all__ = ["UserManager"]
