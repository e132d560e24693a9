from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Optional, Protocol, Union

from django.conf import settings

from gserver.models import UserProfile, get_server_settings

# A provider allow-list as it appears in settings: True or False for
# every provider, or the names of the providers it applies to.
ProviderSetting = Union[bool, frozenset[str]]


def normalize_provider_setting(value: Union[bool, Iterable[str]]) -> ProviderSetting:
    if isinstance(value, bool):
        return value
    return frozenset(value)


def provider_setting_includes(value: ProviderSetting, provider: str) -> bool:
    if isinstance(value, bool):
        return value
    return provider in value


@dataclass(frozen=True)
class ExternalAuthClaims:
    """What a trusted identity provider told us about the person
    signing in.  For SAML, external_id is the IdP's permanent id for the
    user; raw_attributes holds every attribute of the assertion."""

    provider: str
    external_id: str
    name: str = ""
    email: Optional[str] = None
    username: Optional[str] = None
    raw_attributes: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        attributes = {
            key: (values,) if isinstance(values, str) else tuple(values)
            for key, values in self.raw_attributes.items()
        }
        object.__setattr__(self, "raw_attributes", MappingProxyType(attributes))

    def attribute_values(self, name: str) -> tuple[str, ...]:
        return self.raw_attributes.get(name, ())


@dataclass(frozen=True)
class DirectoryPerson:
    """An entry found in an LDAP directory."""

    provider: str
    uid: str
    dn: str
    username: str
    emails: tuple[str, ...] = ()
    name: str = ""

    @property
    def email(self) -> Optional[str]:
        return self.emails[0] if self.emails else None


@dataclass(frozen=True)
class ExternalIdentityPolicy:
    allow_single_sign_on: ProviderSetting = False
    auto_link_external_provider_user: ProviderSetting = False
    auto_link_directory_user: bool = False
    block_auto_created_users: bool = True
    # Per LDAP provider override of block_auto_created_users, for
    # accounts created through the directory.
    directory_block_auto_created_users: Mapping[str, bool] = field(default_factory=dict)
    external_group_attribute_name: Optional[str] = None
    external_group_names: frozenset[str] = frozenset()
    signup_enabled: bool = True
    send_confirmation_email: bool = False
    directory_providers: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept lists from settings files and tests.
        object.__setattr__(
            self, "allow_single_sign_on", normalize_provider_setting(self.allow_single_sign_on)
        )
        object.__setattr__(
            self,
            "auto_link_external_provider_user",
            normalize_provider_setting(self.auto_link_external_provider_user),
        )
        object.__setattr__(self, "external_group_names", frozenset(self.external_group_names))
        object.__setattr__(self, "directory_providers", tuple(self.directory_providers))
        object.__setattr__(
            self,
            "directory_block_auto_created_users",
            MappingProxyType(dict(self.directory_block_auto_created_users)),
        )

    def allows_single_sign_on(self, provider: str) -> bool:
        return provider_setting_includes(self.allow_single_sign_on, provider)

    def auto_links_external_provider_user(self, provider: str) -> bool:
        return provider_setting_includes(self.auto_link_external_provider_user, provider)

    def auto_links_directory_user(self) -> bool:
        return self.auto_link_directory_user and len(self.directory_providers) > 0

    def blocks_auto_created_users(self, directory_provider: Optional[str] = None) -> bool:
        if directory_provider is not None:
            return self.directory_block_auto_created_users.get(
                directory_provider, self.block_auto_created_users
            )
        return self.block_auto_created_users

    def external_flag_for(self, claims: ExternalAuthClaims) -> Optional[bool]:
        """Whether the claims mark the user as external, or None when no
        group attribute is configured and the flag should be left alone."""
        if not self.external_group_attribute_name:
            return None
        groups = set(claims.attribute_values(self.external_group_attribute_name))
        return not groups.isdisjoint(self.external_group_names)


def get_external_identity_policy() -> ExternalIdentityPolicy:
    server_settings = get_server_settings()
    return ExternalIdentityPolicy(
        allow_single_sign_on=normalize_provider_setting(settings.SSO_ALLOW_SINGLE_SIGN_ON),
        auto_link_external_provider_user=normalize_provider_setting(
            settings.SSO_AUTO_LINK_SAML_USER
        ),
        auto_link_directory_user=settings.SSO_AUTO_LINK_LDAP_USER,
        block_auto_created_users=settings.SSO_BLOCK_AUTO_CREATED_USERS,
        directory_block_auto_created_users={
            provider: config["block_auto_created_users"]
            for provider, config in settings.LDAP_PROVIDERS.items()
            if "block_auto_created_users" in config
        },
        external_group_attribute_name=settings.SOCIAL_AUTH_SAML_GROUPS_ATTRIBUTE,
        external_group_names=frozenset(settings.SOCIAL_AUTH_SAML_EXTERNAL_GROUPS),
        signup_enabled=server_settings.signup_enabled,
        send_confirmation_email=server_settings.send_user_confirmation_email,
        directory_providers=tuple(settings.LDAP_PROVIDERS),
    )


@dataclass
class NewAccount:
    username: str
    email: str
    full_name: str
    external: bool = False
    blocked: bool = False
    confirmed: bool = True
    # (provider, external_id) pairs the account is created with.
    identities: Sequence[tuple[str, str]] = ()


class AccountStore(Protocol):
    def find_by_identity(self, provider: str, external_id: str) -> Optional[UserProfile]: ...

    def find_by_email(self, email: str) -> Optional[UserProfile]: ...

    def username_exists(self, username: str) -> bool: ...

    def create(self, account: NewAccount) -> UserProfile:
        """Raises IdentityConflictError when one of the identities, the
        username or the email address was taken concurrently."""
        ...

    def attach_identity(self, user_profile: UserProfile, provider: str, external_id: str) -> None:
        """Raises IdentityConflictError when the identity is already owned,
        or the account already has one for the provider."""
        ...

    def update(self, user_profile: UserProfile, attrs: Mapping[str, Any]) -> None: ...

    def identities(self, user_profile: UserProfile) -> dict[str, str]: ...


class DirectoryLookup(Protocol):
    def find_by_uid(self, provider: str, uid: str) -> Optional[DirectoryPerson]: ...

    def find_by_dn(self, provider: str, dn: str) -> Optional[DirectoryPerson]: ...
