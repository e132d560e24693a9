import logging

from django.db import transaction

from gserver.models import ExternalAuthID, UserProfile

logger = logging.getLogger("gatehouse.auth")


@transaction.atomic(savepoint=False)
def do_block_user(user_profile: UserProfile) -> None:
    if user_profile.blocked:
        return
    user_profile.state = UserProfile.STATE_BLOCKED
    user_profile.save(update_fields=["state"])
    logger.info("Blocked user %s", user_profile.username)


@transaction.atomic(savepoint=False)
def do_activate_user(user_profile: UserProfile) -> None:
    if user_profile.is_active:
        return
    user_profile.state = UserProfile.STATE_ACTIVE
    user_profile.save(update_fields=["state"])
    logger.info("Activated user %s", user_profile.username)


@transaction.atomic(savepoint=False)
def do_change_user_external(user_profile: UserProfile, value: bool) -> None:
    if user_profile.external == value:
        return
    user_profile.external = value
    user_profile.save(update_fields=["external"])
    logger.info("Marked user %s as %s", user_profile.username, "external" if value else "internal")


def do_add_external_auth_id(
    user_profile: UserProfile, provider: str, external_id: str
) -> ExternalAuthID:
    """Attach an identity to an existing account.

    The insert runs in its own savepoint so that an IntegrityError from
    a concurrent writer leaves the surrounding transaction usable.
    """
    with transaction.atomic():
        external_auth_id = ExternalAuthID.objects.create(
            user=user_profile, provider=provider, external_id=external_id
        )
    logger.info("Linked %s identity %s to user %s", provider, external_id, user_profile.username)
    return external_auth_id
