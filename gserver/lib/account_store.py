from collections.abc import Mapping
from typing import Any, Optional

from django.db import IntegrityError, transaction
from typing_extensions import override

from gserver.actions.create_user import do_create_user
from gserver.actions.users import (
    do_activate_user,
    do_add_external_auth_id,
    do_block_user,
    do_change_user_external,
)
from gserver.lib.exceptions import IdentityConflictError
from gserver.lib.external_identity import AccountStore, NewAccount
from gserver.models import ExternalAuthID, UserProfile


class DjangoAccountStore(AccountStore):
    """Accounts and their external identities, stored in the database."""

    @override
    def find_by_identity(self, provider: str, external_id: str) -> Optional[UserProfile]:
        external_auth_id = (
            ExternalAuthID.objects.select_related("user")
            .filter(provider=provider, external_id=external_id)
            .first()
        )
        if external_auth_id is None:
            return None
        return external_auth_id.user

    @override
    def find_by_email(self, email: str) -> Optional[UserProfile]:
        email = email.strip()
        if not email:
            return None
        return UserProfile.objects.filter(email__iexact=email).first()

    @override
    def username_exists(self, username: str) -> bool:
        return UserProfile.objects.filter(username__iexact=username).exists()

    @override
    def create(self, account: NewAccount) -> UserProfile:
        provider, external_id = account.identities[0] if account.identities else ("", "")
        try:
            with transaction.atomic():
                return do_create_user(
                    account.username,
                    account.email,
                    account.full_name,
                    external=account.external,
                    blocked=account.blocked,
                    confirmed=account.confirmed,
                    external_auth_ids=account.identities,
                )
        except IntegrityError:
            raise IdentityConflictError(provider, external_id)

    @override
    def attach_identity(self, user_profile: UserProfile, provider: str, external_id: str) -> None:
        try:
            do_add_external_auth_id(user_profile, provider, external_id)
        except IntegrityError:
            raise IdentityConflictError(provider, external_id)

    @override
    def update(self, user_profile: UserProfile, attrs: Mapping[str, Any]) -> None:
        for key, value in attrs.items():
            if key == "external":
                do_change_user_external(user_profile, value)
            elif key == "blocked":
                if value:
                    do_block_user(user_profile)
                else:
                    do_activate_user(user_profile)
            else:
                raise AssertionError(f"Unsupported account attribute: {key}")

    @override
    def identities(self, user_profile: UserProfile) -> dict[str, str]:
        return dict(
            ExternalAuthID.objects.filter(user=user_profile).values_list("provider", "external_id")
        )
