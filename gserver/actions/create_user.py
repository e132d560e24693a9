import logging
from collections.abc import Iterable

from django.db import transaction
from django.utils.timezone import now as timezone_now

from gserver.models import ExternalAuthID, UserProfile

logger = logging.getLogger("gatehouse.auth")


@transaction.atomic(savepoint=False)
def do_create_user(
    username: str,
    email: str,
    full_name: str,
    *,
    external: bool = False,
    blocked: bool = False,
    confirmed: bool = True,
    external_auth_ids: Iterable[tuple[str, str]] = (),
) -> UserProfile:
    """Creates an account with no usable password, together with the
    external identities it signs in with.

    Runs in the caller's transaction, so a failure to create any of the
    identities rolls back the account too.
    """
    now = timezone_now()
    user_profile = UserProfile(
        username=username,
        email=UserProfile.objects.normalize_email(email),
        full_name=full_name,
        external=external,
        state=UserProfile.STATE_BLOCKED if blocked else UserProfile.STATE_ACTIVE,
        confirmed_at=now if confirmed else None,
        date_joined=now,
    )
    user_profile.set_unusable_password()
    user_profile.save()

    for provider, external_id in external_auth_ids:
        ExternalAuthID.objects.create(
            user=user_profile,
            provider=provider,
            external_id=external_id,
            date_created=now,
        )

    logger.info(
        "Created user %s (id %s, %s)",
        user_profile.username,
        user_profile.id,
        "blocked" if blocked else "active",
    )
    return user_profile
