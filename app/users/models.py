"""
User models.

This module defines:
- User: Custom user model with email-based authentication
- Profile: Family membership and the user's current push endpoint

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: PushTokenService (read/register/remove push tokens)
    - signals.py: Auto-create profile on user creation
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from core.models import BaseModel
from users.managers import UserManager

# FCM registration tokens are ~163 chars today; leave headroom for rotation
PUSH_TOKEN_MAX_LENGTH = 512


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Display and family data live on Profile.

    Fields:
        email: Primary identifier, unique, used for login
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified
    """

    email = models.EmailField(
        unique=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email


class Profile(BaseModel):
    """
    Extended user profile data.

    The profile is the source of truth for the user's push endpoint. The
    client overwrites push_token whenever the device issues a new token;
    the notification pipeline only ever clears it, and only when it still
    holds the exact token the push service rejected.

    Fields:
        user: OneToOne link to User (also serves as primary key)
        display_name: Name shown to other family members
        family_id: Family the user belongs to
        push_token: Current FCM registration token, null when unregistered
        push_token_updated_at: When push_token was last set or cleared
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="profile",
        help_text="User this profile belongs to",
    )

    display_name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Name shown to other family members",
    )

    family_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text="Identifier of the family this user belongs to",
    )

    push_token = models.CharField(
        max_length=PUSH_TOKEN_MAX_LENGTH,
        null=True,
        blank=True,
        help_text="Current push registration token for the user's device",
    )

    push_token_updated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the push token was last registered or removed",
    )

    class Meta:
        db_table = "users_profile"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Profile({self.user_id})"

    @property
    def has_push_token(self) -> bool:
        return bool(self.push_token)
