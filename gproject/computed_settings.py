import os
from typing import Any, Dict, List, Literal

from .config import DEPLOY_ROOT, DEVELOPMENT, PRODUCTION, get_config, get_mandatory_secret
from .configured_settings import ERROR_REPORTING, TEST_SUITE

########################################################################
# STANDARD DJANGO SETTINGS
########################################################################

SECRET_KEY = get_mandatory_secret("secret_key") if PRODUCTION else "gatehouse-development-key"

TIME_ZONE = "UTC"
USE_TZ = True
LANGUAGE_CODE = "en-us"
USE_I18N = True

DEFAULT_AUTO_FIELD = "django.db.models.AutoField"

ROOT_URLCONF = "gproject.urls"

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "social_django",
    "gserver",
]

AUTH_USER_MODEL = "gserver.UserProfile"

# Accounts provisioned through single sign-on never get a usable
# password; every backend here signs in an external identity.
AUTHENTICATION_BACKENDS = (
    "gproject.backends.ExternalIdentityAuthBackend",
    "gproject.backends.SAMLAuthBackend",
)

SOCIAL_AUTH_STRATEGY = "social_django.strategy.DjangoStrategy"
SOCIAL_AUTH_STORAGE = "social_django.models.DjangoStorage"

# The SAML backend hands its validated response to this pipeline;
# social_auth_resolve_external_identity does the account linking.
SOCIAL_AUTH_PIPELINE = [
    "social_core.pipeline.social_auth.social_details",
    "social_core.pipeline.social_auth.social_uid",
    "gproject.backends.social_auth_resolve_external_identity",
]

########################################################################
# DATABASE CONFIGURATION
########################################################################

DATABASES: Dict[str, Dict[str, Any]] = {
    "default": {
        "ENGINE": get_config("database", "engine", "django.db.backends.sqlite3"),
        "NAME": get_config(
            "database", "name", os.path.join(DEPLOY_ROOT, "var", "gatehouse.sqlite3")
        ),
    },
}

########################################################################
# LOGGING SETTINGS
########################################################################


def gatehouse_path(path: str) -> str:
    if DEVELOPMENT:
        # if DEVELOPMENT, store these files in the checkout
        path = os.path.join(DEPLOY_ROOT, "var", "log", os.path.basename(path))
    return path


SERVER_LOG_PATH = gatehouse_path("/var/log/gatehouse/server.log")
ERROR_FILE_LOG_PATH = gatehouse_path("/var/log/gatehouse/errors.log")
AUTH_LOG_PATH = gatehouse_path("/var/log/gatehouse/auth.log")
LDAP_LOG_PATH = gatehouse_path("/var/log/gatehouse/ldap.log")
IMPORT_EXPORT_LOG_PATH = gatehouse_path("/var/log/gatehouse/import_export.log")


def file_handler(
    filename: str,
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG",
    formatter: str = "default",
) -> Dict[str, str]:
    return {
        "filename": filename,
        "level": level,
        "formatter": formatter,
        "class": "logging.handlers.WatchedFileHandler",
    }


# Log files only exist on production installs; in development and in
# the test suite everything goes to the console.
LOG_FILES_ENABLED = PRODUCTION and not TEST_SUITE

DEFAULT_GATEHOUSE_HANDLERS: List[str] = [
    *(["mail_admins"] if ERROR_REPORTING else []),
    "console",
    *(["file", "errors_file"] if LOG_FILES_ENABLED else []),
]


def log_handlers(*file_handler_names: str) -> List[str]:
    return [
        "console",
        *(file_handler_names if LOG_FILES_ENABLED else ()),
        *(["errors_file"] if LOG_FILES_ENABLED else []),
    ]


LOGGING: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "()": "gserver.lib.logging_util.GatehouseFormatter",
        },
    },
    "filters": {
        "require_debug_false": {
            "()": "django.utils.log.RequireDebugFalse",
        },
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
        "mail_admins": {
            "level": "ERROR",
            "class": "django.utils.log.AdminEmailHandler",
            "filters": ["require_debug_false"],
        },
        **(
            {
                "auth_file": file_handler(AUTH_LOG_PATH),
                "errors_file": file_handler(ERROR_FILE_LOG_PATH, level="WARNING"),
                "file": file_handler(SERVER_LOG_PATH),
                "import_export_file": file_handler(IMPORT_EXPORT_LOG_PATH),
                "ldap_file": file_handler(LDAP_LOG_PATH),
            }
            if LOG_FILES_ENABLED
            else {}
        ),
    },
    "loggers": {
        # Style rules, as for the rest of this dict:
        #  * Always set `propagate=False` if setting `handlers`.
        #  * Always write in order: level, filters, handlers, propagate.
        "": {
            "level": "INFO",
            "handlers": DEFAULT_GATEHOUSE_HANDLERS,
        },
        "django": {},
        "django.request": {
            "level": "ERROR",
        },
        # other libraries, alphabetized
        "django_auth_ldap": {
            "level": "DEBUG",
            "handlers": log_handlers("ldap_file"),
            "propagate": False,
        },
        "social": {
            "level": "INFO",
            "handlers": log_handlers("auth_file"),
            "propagate": False,
        },
        # our own loggers, alphabetized
        "gatehouse.auth": {
            "level": "DEBUG",
            "handlers": log_handlers("auth_file"),
            "propagate": False,
        },
        "gatehouse.import_export": {
            "level": "DEBUG",
            "handlers": log_handlers("import_export_file"),
            "propagate": False,
        },
        "gatehouse.ldap": {
            "level": "DEBUG",
            "handlers": log_handlers("ldap_file"),
            "propagate": False,
        },
    },
}

