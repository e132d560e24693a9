from enum import Enum, auto
from typing import Any, Dict, List

from django.utils.translation import gettext as _
from typing_extensions import override


class ErrorCode(Enum):
    BAD_REQUEST = auto()  # Generic name, from the name of HTTP 400.
    BAD_IMAGE = auto()
    AUTHENTICATION_FAILED = auto()
    USER_DEACTIVATED = auto()
    SIGN_IN_NOT_ALLOWED = auto()


class JsonableError(Exception):
    """A standardized error format that the web layer can turn into a
    nice JSON HTTP response or a sign-in failure page.

     * Easiest, but completely machine-unreadable:

         raise JsonableError(_("No such project: {}").format(name))

     * Fully machine-readable, with an error code and structured data:

         class NoSuchProjectError(JsonableError):
             code = ErrorCode.NO_SUCH_PROJECT
             data_fields = ['project_name']

             def __init__(self, project_name: str) -> None:
                 self.project_name: str = project_name

             @staticmethod
             def msg_format() -> str:
                 return _("No such project: {project_name}")

    Subclasses may also override `http_status_code`.
    """

    # Override this in subclasses, as needed.
    code: ErrorCode = ErrorCode.BAD_REQUEST

    # Override this in subclasses if providing structured data.
    data_fields: List[str] = []

    # Optionally override this in subclasses to return a different HTTP status,
    # like 403 or 404.
    http_status_code: int = 400

    def __init__(self, msg: str) -> None:
        # `_msg` is an implementation detail of `JsonableError` itself.
        self._msg = msg

    @staticmethod
    def msg_format() -> str:
        """Override in subclasses.  Gets the items in `data_fields` as format args.

        This should return (a translation of) a string literal.
        """
        return "{_msg}"

    #
    # Infrastructure -- not intended to be overridden in subclasses.
    #

    @property
    def msg(self) -> str:
        format_data = dict(
            ((f, getattr(self, f)) for f in self.data_fields), _msg=getattr(self, "_msg", None)
        )
        return self.msg_format().format(**format_data)

    @property
    def data(self) -> Dict[str, Any]:
        return dict(((f, getattr(self, f)) for f in self.data_fields), code=self.code.name)

    @override
    def __str__(self) -> str:
        return self.msg


class SignInError(JsonableError):
    """No configured policy allows the external identity to be linked to
    an existing account or to create a new one."""

    code: ErrorCode = ErrorCode.SIGN_IN_NOT_ALLOWED
    http_status_code = 403
    data_fields = ["provider"]

    def __init__(self, provider: str) -> None:
        self.provider = provider

    @staticmethod
    @override
    def msg_format() -> str:
        return _(
            "Signing in using your {provider} account without a pre-existing account is not allowed."
        )


class UserBlockedError(JsonableError):
    code: ErrorCode = ErrorCode.USER_DEACTIVATED
    http_status_code = 401

    def __init__(self) -> None:
        pass

    @staticmethod
    @override
    def msg_format() -> str:
        return _("Your account has been blocked. Please contact your administrator.")


class BadImageError(JsonableError):
    code = ErrorCode.BAD_IMAGE


class IdentityConflictError(Exception):
    """The (provider, external_id) pair, or the account's one identity
    for that provider, was claimed by a concurrent writer."""

    def __init__(self, provider: str, external_id: str) -> None:
        super().__init__(f"{provider}:{external_id}")
        self.provider = provider
        self.external_id = external_id


class EmailAlreadyInUseError(SignInError):
    data_fields = ["provider", "email"]

    def __init__(self, provider: str, email: str) -> None:
        self.provider = provider
        self.email = email

    @staticmethod
    @override
    def msg_format() -> str:
        return _(
            "An account with the email address {email} already exists. Sign in to it and "
            "connect your {provider} account from there."
        )


class IdentityAlreadyLinkedError(SignInError):
    """The account found for the identity already signs in with a
    different identity from the same provider."""

    @staticmethod
    @override
    def msg_format() -> str:
        return _(
            "Your account is already connected to a different {provider} account. "
            "Please contact your administrator."
        )


class GatehouseLDAPError(Exception):
    """The directory could not be reached or refused our bind."""


class GatehouseLDAPConfigurationError(Exception):
    pass
