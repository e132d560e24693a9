import io
import os
from typing import IO, Optional

from django.conf import settings
from django.utils.translation import gettext as _
from PIL import Image, ImageOps
from PIL.Image import DecompressionBombError

from gserver.lib.exceptions import BadImageError
from gserver.models import Project

DEFAULT_AVATAR_SIZE = 100
MEDIUM_AVATAR_SIZE = 500


def resize_avatar(image_data: bytes, size: int = DEFAULT_AVATAR_SIZE) -> bytes:
    try:
        im = Image.open(io.BytesIO(image_data))
        im = ImageOps.exif_transpose(im)
        im = ImageOps.fit(im, (size, size), Image.LANCZOS)
    except OSError:
        raise BadImageError(_("Could not decode image; did you upload an image file?"))
    except DecompressionBombError:
        raise BadImageError(_("Image size exceeds limit."))
    out = io.BytesIO()
    if im.mode == "CMYK":
        im = im.convert("RGB")
    im.save(out, format="png")
    return out.getvalue()


### Local


def local_uploads_dir() -> str:
    assert settings.LOCAL_UPLOADS_DIR is not None
    return settings.LOCAL_UPLOADS_DIR


def write_local_file(type: str, path: str, file_data: bytes) -> None:
    file_path = os.path.join(local_uploads_dir(), type, path)

    os.makedirs(os.path.dirname(file_path), exist_ok=True)
    with open(file_path, "wb") as f:
        f.write(file_data)


def read_local_file(type: str, path: str) -> bytes:
    file_path = os.path.join(local_uploads_dir(), type, path)
    with open(file_path, "rb") as f:
        return f.read()


def project_avatar_path(project: Project) -> str:
    return os.path.join(str(project.id), "project", "avatar")


def upload_project_avatar_image(avatar_file: IO[bytes], project: Project) -> None:
    """Stores the uploaded file as the project's original avatar, plus
    the resized copies we serve.  Raises BadImageError, before anything
    is written, if the file is not an image."""
    image_data = avatar_file.read()
    resized_data = resize_avatar(image_data)
    resized_medium = resize_avatar(image_data, MEDIUM_AVATAR_SIZE)

    file_path = project_avatar_path(project)
    write_local_file("avatars", file_path + ".original", image_data)
    write_local_file("avatars", file_path + ".png", resized_data)
    write_local_file("avatars", file_path + "-medium.png", resized_medium)


def read_project_avatar_original(project: Project) -> Optional[bytes]:
    try:
        return read_local_file("avatars", project_avatar_path(project) + ".original")
    except FileNotFoundError:
        return None
