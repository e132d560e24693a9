import logging
from typing import Any

from django.apps import AppConfig
from django.db.models.signals import post_migrate
from typing_extensions import override


def create_server_settings(sender: AppConfig | None, **kwargs: Any) -> None:
    from gserver.models import ServerSettings

    _, created = ServerSettings.objects.get_or_create(id=ServerSettings.SINGLETON_ID)
    if created:
        logging.info("Created the default server settings after migrations")


class GserverConfig(AppConfig):
    name: str = "gserver"
    default_auto_field = "django.db.models.AutoField"

    @override
    def ready(self) -> None:
        post_migrate.connect(create_server_settings, sender=self)
