from django.db import models
from django.utils.timezone import now as timezone_now
from typing_extensions import override


class Project(models.Model):
    MAX_NAME_LENGTH = 255

    name = models.CharField(max_length=MAX_NAME_LENGTH)
    date_created = models.DateTimeField(default=timezone_now)

    AVATAR_FROM_GRAVATAR = "G"
    AVATAR_UPLOADED = "U"
    AVATAR_SOURCES = (
        (AVATAR_FROM_GRAVATAR, "Hosted by Gravatar"),
        (AVATAR_UPLOADED, "Uploaded by a project maintainer"),
    )
    avatar_source = models.CharField(
        default=AVATAR_FROM_GRAVATAR, choices=AVATAR_SOURCES, max_length=1
    )
    avatar_version = models.PositiveSmallIntegerField(default=1)

    @override
    def __str__(self) -> str:
        return f"<Project: {self.name} {self.id}>"
