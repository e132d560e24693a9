# Gatehouse's authentication backends.
#
# Django upstream's documentation for authentication backends is
# helpful background.  The most important detail to understand for
# reading this file is that the Django authenticate() function will
# call the authenticate methods of all backends registered in
# settings.AUTHENTICATION_BACKENDS that have a function signature
# matching the args/kwargs passed in the authenticate() call.
#
# Every backend here signs people in with an identity held by an
# external identity provider.  ExternalIdentityResolver decides which
# local account such an identity belongs to, creating or linking
# accounts as the SSO_* settings allow.
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.http import HttpRequest
from social_core.backends.base import BaseAuth
from social_core.backends.saml import SAMLAuth
from social_core.exceptions import AuthFailed

from gserver.lib.account_store import DjangoAccountStore
from gserver.lib.exceptions import (
    EmailAlreadyInUseError,
    GatehouseLDAPError,
    IdentityAlreadyLinkedError,
    IdentityConflictError,
    SignInError,
    UserBlockedError,
)
from gserver.lib.external_identity import (
    AccountStore,
    DirectoryLookup,
    DirectoryPerson,
    ExternalAuthClaims,
    ExternalIdentityPolicy,
    NewAccount,
    get_external_identity_policy,
)
from gserver.models import UserProfile


def get_directory_lookup() -> Optional[DirectoryLookup]:
    """The directory used for auto-linking, or None when no LDAP
    provider is configured.  python-ldap is only needed in the latter
    case, so it is imported lazily."""
    if not settings.LDAP_PROVIDERS:
        return None
    from gserver.lib.ldap_directory import LDAPDirectory

    return LDAPDirectory()


def is_user_active(user_profile: UserProfile, return_data: Optional[Dict[str, Any]] = None) -> bool:
    if not user_profile.is_active:
        if return_data is not None:
            return_data["inactive_user"] = True
            return_data["inactive_user_id"] = user_profile.id
        return False

    return True


USERNAME_INVALID_CHARS_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def clean_username(value: str) -> str:
    # An email address or a SAML NameID is not a username, but its
    # local part usually is.
    value = value.split("@", 1)[0]
    value = USERNAME_INVALID_CHARS_RE.sub("_", value).strip("._-")
    return value[: UserProfile.MAX_USERNAME_LENGTH - 10]


def temporary_email_address(username: str) -> str:
    return f"temp-email-for-sso-{username}@{settings.FAKE_EMAIL_DOMAIN}"


ResolutionStrategy = Callable[[ExternalAuthClaims, ExternalIdentityPolicy], Optional[UserProfile]]


class ExternalIdentityResolver:
    """Maps an external identity to the local account it signs in to.

    Strategies are tried in a fixed order and the first one to return
    an account wins:

    * the account that already owns the identity;
    * an account with the same email address, if auto-linking is
      enabled for the provider;
    * the account of the matching person in an LDAP directory, if
      directory auto-linking is enabled, creating it if necessary;
    * a new account, if the provider is allowed to create accounts.

    If none applies, SignInError is raised.  Accounts are never merged:
    when the identity and the directory person belong to two different
    accounts, the identity's owner wins.
    """

    def __init__(
        self,
        account_store: AccountStore,
        directory: Optional[DirectoryLookup] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.account_store = account_store
        self.directory = directory
        self.logger = logger if logger is not None else logging.getLogger("gatehouse.auth")

    def strategies(self) -> List[ResolutionStrategy]:
        return [
            self.match_identity,
            self.link_by_email,
            self.link_directory_person,
            self.create_account,
        ]

    def resolve(self, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy) -> UserProfile:
        try:
            # A failed resolution leaves no identities or accounts behind.
            with transaction.atomic():
                user_profile = self.run_strategies(claims, policy)
        except IdentityConflictError as e:
            # Somebody else wrote the identity first, most likely a
            # second sign-in of the same person racing with this one.
            self.logger.info(
                "Identity %s:%s was written concurrently; looking it up again",
                e.provider,
                e.external_id,
            )
            retried = self.account_store.find_by_identity(claims.provider, claims.external_id)
            if retried is None:
                self.logger.error(
                    "Identity %s:%s conflicted but no account owns it",
                    claims.provider,
                    claims.external_id,
                )
                raise SignInError(claims.provider)
            user_profile = retried

        self.apply_external_group_policy(user_profile, claims, policy)
        return user_profile

    def run_strategies(
        self, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> UserProfile:
        for strategy in self.strategies():
            user_profile = strategy(claims, policy)
            if user_profile is not None:
                return user_profile

        self.logger.info(
            "%s identity %s has no account and may not create one",
            claims.provider,
            claims.external_id,
        )
        raise SignInError(claims.provider)

    def match_identity(
        self, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> Optional[UserProfile]:
        user_profile = self.account_store.find_by_identity(claims.provider, claims.external_id)
        if user_profile is not None and policy.auto_links_directory_user():
            self.add_directory_identity(user_profile, claims, policy)
        return user_profile

    def link_by_email(
        self, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> Optional[UserProfile]:
        if not claims.email or not policy.auto_links_external_provider_user(claims.provider):
            return None
        user_profile = self.account_store.find_by_email(claims.email)
        if user_profile is None:
            return None

        self.attach_claims_identity(user_profile, claims)
        return user_profile

    def link_directory_person(
        self, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> Optional[UserProfile]:
        if not policy.auto_links_directory_user():
            return None
        person = self.find_directory_person(claims, policy)
        if person is None:
            return None

        user_profile = self.directory_account(person, claims, policy)
        self.attach_claims_identity(user_profile, claims)
        return user_profile

    def attach_claims_identity(self, user_profile: UserProfile, claims: ExternalAuthClaims) -> None:
        current = self.account_store.identities(user_profile).get(claims.provider)
        if current == claims.external_id:
            return
        if current is not None:
            self.logger.info(
                "User %s already has %s identity %s; not linking %s identity %s",
                user_profile.id,
                claims.provider,
                current,
                claims.provider,
                claims.external_id,
            )
            raise IdentityAlreadyLinkedError(claims.provider)
        self.account_store.attach_identity(user_profile, claims.provider, claims.external_id)

    def create_account(
        self, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> Optional[UserProfile]:
        if not policy.allows_single_sign_on(claims.provider):
            return None

        username = self.unique_username(claims.username or claims.email or claims.external_id)
        return self.create(
            NewAccount(
                username=username,
                email=claims.email or temporary_email_address(username),
                full_name=claims.name or username,
                external=bool(policy.external_flag_for(claims)),
                blocked=policy.blocks_auto_created_users(),
                identities=[(claims.provider, claims.external_id)],
            ),
            claims,
        )

    def find_directory_person(
        self, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> Optional[DirectoryPerson]:
        if self.directory is None:
            return None

        for provider in policy.directory_providers:
            try:
                person = self.directory.find_by_uid(
                    provider, claims.external_id
                ) or self.directory.find_by_dn(provider, claims.external_id)
            except GatehouseLDAPError as e:
                self.logger.warning("Skipping LDAP provider %s: %s", provider, e)
                continue
            if person is not None:
                return person
        return None

    def directory_account(
        self, person: DirectoryPerson, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> UserProfile:
        user_profile = self.account_store.find_by_identity(person.provider, person.dn)
        if user_profile is not None:
            return user_profile

        for email in person.emails:
            user_profile = self.account_store.find_by_email(email)
            if user_profile is not None:
                if person.provider not in self.account_store.identities(user_profile):
                    self.account_store.attach_identity(user_profile, person.provider, person.dn)
                return user_profile

        # The directory vouches for this person, so allow_single_sign_on
        # does not apply.
        username = self.unique_username(person.username)
        return self.create(
            NewAccount(
                username=username,
                email=person.email or claims.email or temporary_email_address(username),
                full_name=person.name or claims.name or username,
                external=bool(policy.external_flag_for(claims)),
                blocked=policy.blocks_auto_created_users(person.provider),
                identities=[
                    (person.provider, person.dn),
                    (claims.provider, claims.external_id),
                ],
            ),
            claims,
        )

    def add_directory_identity(
        self, user_profile: UserProfile, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> None:
        person = self.find_directory_person(claims, policy)
        if person is None:
            return

        owner = self.account_store.find_by_identity(person.provider, person.dn)
        if owner is None:
            if person.provider not in self.account_store.identities(user_profile):
                self.account_store.attach_identity(user_profile, person.provider, person.dn)
        elif owner.id != user_profile.id:
            self.logger.warning(
                "%s identity %s belongs to user %s, but %s identity %s belongs to user %s; "
                "not merging the accounts",
                person.provider,
                person.dn,
                owner.id,
                claims.provider,
                claims.external_id,
                user_profile.id,
            )

    def create(self, account: NewAccount, claims: ExternalAuthClaims) -> UserProfile:
        if self.account_store.find_by_email(account.email) is not None:
            self.logger.info(
                "%s identity %s: email %s is taken and auto-linking is disabled",
                claims.provider,
                claims.external_id,
                account.email,
            )
            raise EmailAlreadyInUseError(claims.provider, account.email)

        user_profile = self.account_store.create(account)
        self.logger.info(
            "Created user %s for %s identity %s",
            user_profile.id,
            claims.provider,
            claims.external_id,
        )
        return user_profile

    def unique_username(self, base: str) -> str:
        username = clean_username(base) or "user"
        candidate = username
        suffix = 1
        while self.account_store.username_exists(candidate):
            candidate = f"{username}{suffix}"
            suffix += 1
        return candidate

    def apply_external_group_policy(
        self, user_profile: UserProfile, claims: ExternalAuthClaims, policy: ExternalIdentityPolicy
    ) -> None:
        external = policy.external_flag_for(claims)
        if external is None or user_profile.external == external:
            return
        self.account_store.update(user_profile, {"external": external})


class GatehouseAuthMixin:
    name = "undefined"
    _logger: Optional[logging.Logger] = None

    @property
    def logger(self) -> logging.Logger:
        if self._logger is None:
            self._logger = logging.getLogger(f"gatehouse.auth.{self.name}")
        return self._logger

    def get_user(self, user_profile_id: int) -> Optional[UserProfile]:
        """Override the Django method for getting a UserProfile object from
        the user_profile_id."""
        try:
            return UserProfile.objects.get(id=user_profile_id)
        except UserProfile.DoesNotExist:
            return None


class ExternalIdentityAuthBackend(GatehouseAuthMixin):
    """Signs in the account an already validated external identity
    resolves to.  Protocol-specific code (the SAML pipeline below)
    validates the assertion and calls

        authenticate(request, external_auth_claims=claims, return_data={})
    """

    name = "external_identity"

    def authenticate(
        self,
        request: Optional[HttpRequest] = None,
        *,
        external_auth_claims: ExternalAuthClaims,
        policy: Optional[ExternalIdentityPolicy] = None,
        return_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[UserProfile]:
        if policy is None:
            policy = get_external_identity_policy()
        resolver = ExternalIdentityResolver(
            DjangoAccountStore(), get_directory_lookup(), logger=self.logger
        )
        try:
            user_profile = resolver.resolve(external_auth_claims, policy)
        except SignInError as e:
            if return_data is not None:
                return_data["sign_in_error"] = e.msg
            return None

        if not is_user_active(user_profile, return_data):
            self.logger.info("Failed login attempt for blocked account: %s", user_profile.id)
            return None
        return user_profile


def claims_from_saml_response(
    provider: str, uid: str, details: Dict[str, Any], response: Dict[str, Any]
) -> ExternalAuthClaims:
    """social-core hands us the uid as "<idp name>:<permanent id>"; the
    permanent id is the identity we store."""
    permanent_id = uid.split(":", 1)[-1]
    full_name = details.get("fullname") or " ".join(
        part for part in (details.get("first_name"), details.get("last_name")) if part
    )
    return ExternalAuthClaims(
        provider=provider,
        external_id=permanent_id,
        name=full_name,
        email=details.get("email") or None,
        username=details.get("username") or None,
        raw_attributes=response.get("attributes", {}),
    )


def social_auth_resolve_external_identity(
    backend: BaseAuth,
    details: Dict[str, Any],
    response: Dict[str, Any],
    uid: str,
    *args: Any,
    **kwargs: Any,
) -> Dict[str, Any]:
    """social-core pipeline step, run after the SAML response has been
    validated; see SOCIAL_AUTH_PIPELINE."""
    claims = claims_from_saml_response(backend.name, uid, details, response)
    return_data: Dict[str, Any] = {}
    user_profile = ExternalIdentityAuthBackend().authenticate(
        external_auth_claims=claims, return_data=return_data
    )
    if user_profile is None:
        if return_data.get("inactive_user"):
            raise AuthFailed(backend, UserBlockedError().msg)
        raise AuthFailed(backend, return_data.get("sign_in_error", SignInError(backend.name).msg))
    return {"user": user_profile}


class SAMLAuthBackend(GatehouseAuthMixin, SAMLAuth):
    name = "saml"
