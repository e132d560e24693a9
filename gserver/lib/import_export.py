import logging
import os
from functools import cached_property
from typing import List, Optional

from django.conf import settings

from gserver.actions.projects import do_change_project_avatar_source
from gserver.lib.exceptions import BadImageError
from gserver.lib.upload import read_project_avatar_original, upload_project_avatar_image
from gserver.models import Project

logger = logging.getLogger("gatehouse.import_export")

AVATAR_EXPORT_DIR = "avatar"
AVATAR_EXPORT_FILE_NAME = "avatar.original"


class ImportExportShared:
    """State shared by the steps of one project import or export: where
    the bundle lives on disk, and the errors the steps ran into.

    Steps report problems through error() rather than raising, so that
    one bad piece of a bundle does not abort a whole batch.
    """

    def __init__(self, relative_path: str) -> None:
        self.relative_path = relative_path
        self.errors: List[str] = []

    @property
    def export_path(self) -> str:
        return os.path.join(settings.IMPORT_EXPORT_STORAGE_PATH, self.relative_path)

    def error(self, error: Exception) -> None:
        message = str(error)
        logger.error("Import/Export error in %s: %s", self.relative_path, message, exc_info=error)
        self.errors.append(message)


class AvatarRestorer:
    def __init__(self, *, project: Project, shared: ImportExportShared) -> None:
        self.project = project
        self.shared = shared

    def restore(self) -> bool:
        """Makes the bundle's avatar the project's avatar.  A missing,
        unreadable or invalid avatar is recorded in the shared errors
        and returns False."""
        try:
            avatar_file_path = self.avatar_export_file
            if avatar_file_path is None:
                raise FileNotFoundError(f"No avatar file in {self.avatar_export_path}")
            with open(avatar_file_path, "rb") as avatar_file:
                upload_project_avatar_image(avatar_file, self.project)
        except (OSError, BadImageError) as e:
            self.shared.error(e)
            return False

        do_change_project_avatar_source(self.project, Project.AVATAR_UPLOADED)
        logger.info("Restored avatar of project %s from %s", self.project.id, avatar_file_path)
        return True

    @cached_property
    def avatar_export_file(self) -> Optional[str]:
        if not os.path.isdir(self.avatar_export_path):
            return None
        for file_name in sorted(os.listdir(self.avatar_export_path)):
            file_path = os.path.join(self.avatar_export_path, file_name)
            if os.path.isfile(file_path):
                return file_path
        return None

    @property
    def avatar_export_path(self) -> str:
        return os.path.join(self.shared.export_path, AVATAR_EXPORT_DIR)


class AvatarSaver:
    def __init__(self, *, project: Project, shared: ImportExportShared) -> None:
        self.project = project
        self.shared = shared

    def save(self) -> bool:
        if self.project.avatar_source != Project.AVATAR_UPLOADED:
            return True

        try:
            image_data = read_project_avatar_original(self.project)
            if image_data is None:
                raise FileNotFoundError(
                    f"Avatar of project {self.project.id} is missing from the uploads directory"
                )
            os.makedirs(self.avatar_export_path, exist_ok=True)
            with open(os.path.join(self.avatar_export_path, AVATAR_EXPORT_FILE_NAME), "wb") as f:
                f.write(image_data)
        except OSError as e:
            self.shared.error(e)
            return False
        return True

    @property
    def avatar_export_path(self) -> str:
        return os.path.join(self.shared.export_path, AVATAR_EXPORT_DIR)
