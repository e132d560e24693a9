import logging

from django.db import transaction

from gserver.models import Project

logger = logging.getLogger("gatehouse.import_export")


@transaction.atomic(savepoint=False)
def do_change_project_avatar_source(project: Project, avatar_source: str) -> None:
    project.avatar_source = avatar_source
    project.avatar_version += 1
    project.save(update_fields=["avatar_source", "avatar_version"])
    logger.debug(
        "Project %s avatar source is now %s (version %s)",
        project.id,
        avatar_source,
        project.avatar_version,
    )
