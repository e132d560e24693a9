from typing import List, TypedDict


class SAMLIdPConfigDict(TypedDict, total=False):
    entity_id: str
    url: str
    attr_user_permanent_id: str
    attr_first_name: str
    attr_last_name: str
    attr_username: str
    attr_email: str
    display_name: str
    x509cert: str
    x509cert_path: str


class LDAPProviderConfigDict(TypedDict, total=False):
    # Prefix of the django-auth-ldap settings (AUTH_LDAP_SERVER_URI,
    # AUTH_LDAP_USER_SEARCH, ...) describing how to reach this directory.
    settings_prefix: str
    uid_attr: str
    email_attrs: List[str]
    name_attr: str
    # Overrides SSO_BLOCK_AUTO_CREATED_USERS for accounts created
    # through this directory.
    block_auto_created_users: bool
