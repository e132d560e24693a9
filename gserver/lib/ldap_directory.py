import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional

import ldap
import ldap.dn
from django.conf import settings
from django_auth_ldap.backend import LDAPBackend, _LDAPUser
from django_auth_ldap.config import LDAPSearch
from typing_extensions import override

from gproject.settings_types import LDAPProviderConfigDict
from gserver.lib.exceptions import GatehouseLDAPConfigurationError, GatehouseLDAPError
from gserver.lib.external_identity import DirectoryLookup, DirectoryPerson

ldap_logger = logging.getLogger("gatehouse.ldap")

DEFAULT_SETTINGS_PREFIX = "AUTH_LDAP_"
DEFAULT_UID_ATTR = "uid"
DEFAULT_EMAIL_ATTRS = ["mail", "email", "userPrincipalName"]
DEFAULT_NAME_ATTR = "cn"


def normalize_dn(dn: str) -> str:
    """Canonical spelling of a DN, so that the same entry always maps to
    the same identity: no whitespace around separators, lowercase
    attribute types.  Values keep their case."""
    try:
        rdns = ldap.dn.str2dn(dn)
    except ldap.DECODING_ERROR:
        return dn.strip()
    return ldap.dn.dn2str(
        [[(attr.lower(), value, flags) for attr, value, flags in rdn] for rdn in rdns]
    )


def ldap_attr_values(attrs: Mapping[str, Sequence[Any]], name: str) -> list[str]:
    # Attribute types are case-insensitive in LDAP.
    for key, values in attrs.items():
        if key.lower() == name.lower():
            return [
                value.decode("utf-8") if isinstance(value, bytes) else str(value)
                for value in values
            ]
    return []


class LDAPDirectoryBackend(LDAPBackend):
    """A django-auth-ldap backend bound to one of LDAP_PROVIDERS.

    We only borrow django-auth-ldap's connection handling and user
    search from it; it never authenticates anyone, so it must not be
    listed in AUTHENTICATION_BACKENDS.
    """

    def __init__(self, provider: str, settings_prefix: str = DEFAULT_SETTINGS_PREFIX) -> None:
        super().__init__()
        self.provider = provider
        self.settings_prefix = settings_prefix

    @override
    def authenticate(
        self,
        request: Any,
        username: Optional[str] = None,
        password: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        return None

    def check_config(self) -> None:
        if not self.settings.SERVER_URI:
            raise GatehouseLDAPConfigurationError(
                f"{self.settings_prefix}SERVER_URI is not set for LDAP provider {self.provider}"
            )
        if self.settings.USER_SEARCH is None and not self.settings.USER_DN_TEMPLATE:
            raise GatehouseLDAPConfigurationError(
                f"LDAP provider {self.provider} needs {self.settings_prefix}USER_SEARCH "
                f"or {self.settings_prefix}USER_DN_TEMPLATE"
            )


class LDAPDirectory(DirectoryLookup):
    """Looks people up in the LDAP directories configured in
    LDAP_PROVIDERS, through django-auth-ldap."""

    def __init__(self, providers: Optional[Mapping[str, LDAPProviderConfigDict]] = None) -> None:
        self.providers: Mapping[str, LDAPProviderConfigDict] = (
            settings.LDAP_PROVIDERS if providers is None else providers
        )
        self._backends: dict[str, LDAPDirectoryBackend] = {}

    def get_backend(self, provider: str) -> LDAPDirectoryBackend:
        if provider not in self._backends:
            if provider not in self.providers:
                raise GatehouseLDAPConfigurationError(f"Unknown LDAP provider: {provider}")
            config = self.providers[provider]
            backend = LDAPDirectoryBackend(
                provider, config.get("settings_prefix", DEFAULT_SETTINGS_PREFIX)
            )
            backend.check_config()
            self._backends[provider] = backend
        return self._backends[provider]

    @override
    def find_by_uid(self, provider: str, uid: str) -> Optional[DirectoryPerson]:
        ldap_user = _LDAPUser(self.get_backend(provider), username=uid)
        try:
            user_dn = ldap_user.dn
            user_attrs = ldap_user.attrs
        except ldap.LDAPError as e:
            raise GatehouseLDAPError(f"{provider}: looking up uid {uid} failed: {e}") from e

        if user_dn is None or user_attrs is None:
            ldap_logger.debug("%s: no entry with uid %s", provider, uid)
            return None
        return self.person_from_entry(provider, user_dn, user_attrs)

    @override
    def find_by_dn(self, provider: str, dn: str) -> Optional[DirectoryPerson]:
        backend = self.get_backend(provider)
        if not ldap.dn.is_dn(dn):
            return None
        # The username is not used for a base search; _LDAPUser is just
        # the way django-auth-ldap hands out a bound connection.
        search = LDAPSearch(dn, ldap.SCOPE_BASE, "(objectClass=*)")
        try:
            results = search.execute(_LDAPUser(backend, username="").connection)
        except ldap.LDAPError as e:
            raise GatehouseLDAPError(f"{provider}: looking up {dn} failed: {e}") from e

        if not results:
            ldap_logger.debug("%s: no entry with DN %s", provider, dn)
            return None
        entry_dn, entry_attrs = results[0]
        return self.person_from_entry(provider, entry_dn, entry_attrs)

    def person_from_entry(
        self, provider: str, dn: str, attrs: Mapping[str, Sequence[Any]]
    ) -> Optional[DirectoryPerson]:
        config = self.providers[provider]
        uid_values = ldap_attr_values(attrs, config.get("uid_attr", DEFAULT_UID_ATTR))
        if not uid_values:
            ldap_logger.warning("%s: entry %s has no uid attribute, ignoring it", provider, dn)
            return None

        emails: list[str] = []
        for email_attr in config.get("email_attrs", DEFAULT_EMAIL_ATTRS):
            for email in ldap_attr_values(attrs, email_attr):
                if email not in emails:
                    emails.append(email)

        name_values = ldap_attr_values(attrs, config.get("name_attr", DEFAULT_NAME_ATTR))
        return DirectoryPerson(
            provider=provider,
            uid=uid_values[0],
            dn=normalize_dn(dn),
            username=uid_values[0],
            emails=tuple(emails),
            name=name_values[0] if name_values else "",
        )
