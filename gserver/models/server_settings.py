from django.db import models
from typing_extensions import override


class ServerSettings(models.Model):
    """Server-wide settings an administrator edits at runtime, as
    opposed to the deployment settings in /etc/gatehouse/settings.py.
    There is only ever one row."""

    SINGLETON_ID = 1

    # Whether the regular signup form is open.  Accounts provisioned
    # through single sign-on are not affected.
    signup_enabled = models.BooleanField(default=True)
    # Whether new accounts must confirm their email address before
    # they can sign in.  Single sign-on accounts are confirmed on
    # creation either way.
    send_user_confirmation_email = models.BooleanField(default=False)

    @override
    def __str__(self) -> str:
        return f"<ServerSettings: signup_enabled={self.signup_enabled}>"


def get_server_settings() -> ServerSettings:
    server_settings, _ = ServerSettings.objects.get_or_create(id=ServerSettings.SINGLETON_ID)
    return server_settings
