import os
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from gproject.settings_types import LDAPProviderConfigDict, SAMLIdPConfigDict

from .config import DEPLOY_ROOT, DEVELOPMENT, PRODUCTION, get_config, get_secret

if TYPE_CHECKING:
    from django_auth_ldap.config import LDAPSearch

DEBUG = DEVELOPMENT

# These settings are intended for the server admin to set in
# /etc/gatehouse/settings.py.

EXTERNAL_HOST = get_config("machine", "external_host", "localhost")
ALLOWED_HOSTS: List[str] = []

# Domain used for placeholder addresses of accounts whose identity
# provider did not send an email address.
FAKE_EMAIL_DOMAIN = "gatehouse.localhost"

# Uploaded files, including project avatars.
LOCAL_UPLOADS_DIR: Optional[str] = (
    os.path.join(DEPLOY_ROOT, "var", "uploads") if DEVELOPMENT else "/home/gatehouse/uploads"
)

# Project export bundles are unpacked under this directory.
IMPORT_EXPORT_STORAGE_PATH = (
    os.path.join(DEPLOY_ROOT, "var", "import_export")
    if DEVELOPMENT
    else "/home/gatehouse/import_export"
)

# Single sign-on account provisioning.
#
# SSO_ALLOW_SINGLE_SIGN_ON controls which providers may create new
# accounts for users we have never seen before: False, True, or a
# list of provider names such as ["saml"].
SSO_ALLOW_SINGLE_SIGN_ON: Union[bool, List[str]] = False
# Link a first sign-in to an existing account with the same email
# address.  True, False, or a list of provider names.
SSO_AUTO_LINK_SAML_USER: Union[bool, List[str]] = False
# Look the user up in the configured LDAP_PROVIDERS and share one
# account between the LDAP identity and the SSO identity.
SSO_AUTO_LINK_LDAP_USER = False
# Accounts created through single sign-on start out blocked until an
# administrator activates them.
SSO_BLOCK_AUTO_CREATED_USERS = True

# SAML
SOCIAL_AUTH_SAML_SP_ENTITY_ID: Optional[str] = None
SOCIAL_AUTH_SAML_SP_PUBLIC_CERT = ""
SOCIAL_AUTH_SAML_SP_PRIVATE_KEY = ""
SOCIAL_AUTH_SAML_ORG_INFO: Optional[Dict[str, Dict[str, str]]] = None
SOCIAL_AUTH_SAML_TECHNICAL_CONTACT: Optional[Dict[str, str]] = None
SOCIAL_AUTH_SAML_SUPPORT_CONTACT: Optional[Dict[str, str]] = None
SOCIAL_AUTH_SAML_ENABLED_IDPS: Dict[str, SAMLIdPConfigDict] = {}
SOCIAL_AUTH_SAML_SECURITY_CONFIG: Dict[str, Any] = {}
# Name of the SAML attribute listing the user's groups, and the groups
# whose members are marked as external users.
SOCIAL_AUTH_SAML_GROUPS_ATTRIBUTE: Optional[str] = None
SOCIAL_AUTH_SAML_EXTERNAL_GROUPS: List[str] = []

# LDAP directories, keyed by provider name.  Each entry points at a
# django-auth-ldap settings prefix (see AUTH_LDAP_* below).
LDAP_PROVIDERS: Dict[str, LDAPProviderConfigDict] = {}

# LDAP connection settings for the default "AUTH_LDAP_" prefix.
AUTH_LDAP_SERVER_URI = ""
AUTH_LDAP_BIND_DN = ""
AUTH_LDAP_BIND_PASSWORD = get_secret("auth_ldap_bind_password", "")
AUTH_LDAP_USER_SEARCH: Optional["LDAPSearch"] = None
AUTH_LDAP_CONNECTION_OPTIONS: Dict[int, object] = {}
AUTH_LDAP_CACHE_TIMEOUT = 0

# Logging
LOGGING_SHOW_MODULE = False
LOGGING_SHOW_PID = False

if PRODUCTION:  # nocoverage
    ERROR_REPORTING = True
else:
    ERROR_REPORTING = False
