"""
Push endpoint service.

The user's push endpoint is a single nullable field on Profile. This module
is the only place that reads or writes it.

Concurrency:
    Several dispatches touching the same user may run at once, and the
    client may register a fresh token at any moment. Removal is therefore a
    compare-and-delete UPDATE that clears the field only while it still
    holds the rejected token:

        UPDATE users_profile SET push_token = NULL
        WHERE user_id = %s AND push_token = %s

    Repeated or concurrent removals commute, and a newly registered token
    is never clobbered.

Usage:
    from users.services import PushTokenService

    token = PushTokenService.get_token(user_id)
    tokens = PushTokenService.get_tokens(["1", "2", "3"])
    PushTokenService.remove_token_if_matches(user_id, token)
"""

from __future__ import annotations

from collections.abc import Iterable

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from core.services import BaseService, ServiceResult
from users.models import PUSH_TOKEN_MAX_LENGTH, Profile


class PushTokenService(BaseService):
    """Read, register and remove push endpoints on user profiles."""

    @classmethod
    def get_token(cls, user_id) -> str | None:
        """
        Return the user's current push token, or None.

        Missing profiles and blank tokens both count as "no endpoint".
        """
        token = (
            Profile.objects.filter(user_id=user_id)
            .values_list("push_token", flat=True)
            .first()
        )
        return token or None

    @classmethod
    def get_tokens(cls, user_ids: Iterable) -> dict[str, str]:
        """
        Resolve push tokens for many users in one query.

        Args:
            user_ids: User ids (any type Django can coerce to the pk type)

        Returns:
            Mapping of str(user_id) to token, only for users that have one
        """
        user_ids = cls._coerce_user_ids(user_ids)
        if not user_ids:
            return {}

        rows = (
            Profile.objects.filter(user_id__in=user_ids, push_token__isnull=False)
            .exclude(push_token="")
            .values_list("user_id", "push_token")
        )
        return {str(user_id): token for user_id, token in rows}

    @classmethod
    def canonical_user_id(cls, user_id) -> str | None:
        """
        Normalize a user id to the string form of the user pk.

        "5", "05", " 5" and 5 all become "5". Ids that can never match a
        user are returned stripped; None stays None.
        """
        try:
            value = Profile._meta.get_field("user").target_field.to_python(user_id)
        except DjangoValidationError:
            return str(user_id).strip()
        return None if value is None else str(value)

    @classmethod
    def _coerce_user_ids(cls, user_ids: Iterable) -> list:
        """Convert ids to the user pk type, dropping ones that cannot match a user."""
        pk_field = Profile._meta.get_field("user").target_field
        coerced = []
        for user_id in user_ids:
            try:
                value = pk_field.to_python(user_id)
            except DjangoValidationError:
                cls.get_logger().warning(f"Ignoring malformed user id {user_id!r}")
                continue
            if value is not None:
                coerced.append(value)
        return coerced

    @classmethod
    def register_token(cls, user, token: str) -> ServiceResult[Profile]:
        """
        Store a new push token for the user, replacing any previous one.

        Returns:
            ServiceResult with the updated Profile, or failure with
            INVALID_TOKEN when the token is blank or too long.
        """
        token = (token or "").strip()
        if not token:
            return ServiceResult.failure(
                "Push token is required",
                error_code="INVALID_TOKEN",
            )
        if len(token) > PUSH_TOKEN_MAX_LENGTH:
            return ServiceResult.failure(
                f"Push token exceeds {PUSH_TOKEN_MAX_LENGTH} characters",
                error_code="INVALID_TOKEN",
            )

        profile, _ = Profile.objects.get_or_create(user=user)
        profile.push_token = token
        profile.push_token_updated_at = timezone.now()
        profile.save(update_fields=["push_token", "push_token_updated_at", "updated_at"])

        cls.get_logger().info(f"Registered push token for user {user.pk}")
        return ServiceResult.success(profile)

    @classmethod
    def remove_token_if_matches(cls, user_id, token: str) -> bool:
        """
        Clear the user's push token if it still equals ``token``.

        Idempotent: removing a token that is already gone, or that has been
        replaced by a newer one, is a no-op.

        Returns:
            True if a row was updated
        """
        if not token:
            return False

        now = timezone.now()
        removed = Profile.objects.filter(user_id=user_id, push_token=token).update(
            push_token=None,
            push_token_updated_at=now,
            updated_at=now,
        )

        logger = cls.get_logger()
        if removed:
            logger.info(
                f"Removed invalid push token for user {user_id}",
                extra={"user_id": str(user_id)},
            )
        else:
            logger.debug(
                f"Push token for user {user_id} already removed or replaced",
                extra={"user_id": str(user_id)},
            )
        return bool(removed)
