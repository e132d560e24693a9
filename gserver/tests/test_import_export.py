import os
from unittest.mock import PropertyMock, patch

from django.conf import settings
from typing_extensions import override

from gserver.lib.import_export import AvatarRestorer, AvatarSaver, ImportExportShared
from gserver.lib.test_classes import GatehouseTestCase
from gserver.lib.test_helpers import make_test_image_data
from gserver.lib.upload import read_project_avatar_original
from gserver.models import Project


class ImportExportTestCase(GatehouseTestCase):
    @override
    def setUp(self) -> None:
        super().setUp()
        self.project = self.create_project()
        self.shared = ImportExportShared("elsinore-export")

    def write_bundle_file(self, name: str, data: bytes) -> str:
        path = os.path.join(self.shared.export_path, "avatar", name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        return path


class AvatarRestorerTest(ImportExportTestCase):
    def test_restores_the_avatar(self) -> None:
        image_data = make_test_image_data()
        avatar_path = self.write_bundle_file("dk.png", image_data)

        restorer = AvatarRestorer(project=self.project, shared=self.shared)
        with patch.object(
            AvatarRestorer, "avatar_export_file", new_callable=PropertyMock
        ) as avatar_export_file:
            avatar_export_file.return_value = avatar_path
            self.assertTrue(restorer.restore())

        self.project.refresh_from_db()
        self.assertEqual(self.project.avatar_source, Project.AVATAR_UPLOADED)
        self.assertEqual(self.project.avatar_version, 2)
        self.assertEqual(read_project_avatar_original(self.project), image_data)
        self.assertEqual(self.shared.errors, [])

    def test_finds_the_avatar_in_the_bundle(self) -> None:
        self.write_bundle_file("logo.jpeg", make_test_image_data(format="JPEG"))
        self.write_bundle_file("zz-unused.png", b"not read")

        restorer = AvatarRestorer(project=self.project, shared=self.shared)
        self.assertEqual(
            restorer.avatar_export_file,
            os.path.join(
                settings.IMPORT_EXPORT_STORAGE_PATH, "elsinore-export", "avatar", "logo.jpeg"
            ),
        )
        self.assertTrue(restorer.restore())

        self.project.refresh_from_db()
        self.assertEqual(self.project.avatar_source, Project.AVATAR_UPLOADED)

    def test_bundle_without_an_avatar(self) -> None:
        restorer = AvatarRestorer(project=self.project, shared=self.shared)

        self.assertIsNone(restorer.avatar_export_file)
        with self.assertLogs("gatehouse.import_export", level="ERROR") as m:
            self.assertFalse(restorer.restore())

        avatar_dir = os.path.join(settings.IMPORT_EXPORT_STORAGE_PATH, "elsinore-export", "avatar")
        self.assertEqual(self.shared.errors, [f"No avatar file in {avatar_dir}"])
        self.assertTrue(
            m.output[0].startswith(
                "ERROR:gatehouse.import_export:Import/Export error in elsinore-export: "
                f"No avatar file in {avatar_dir}"
            )
        )
        self.project.refresh_from_db()
        self.assertEqual(self.project.avatar_source, Project.AVATAR_FROM_GRAVATAR)
        self.assertEqual(self.project.avatar_version, 1)

    def test_empty_avatar_directory(self) -> None:
        os.makedirs(os.path.join(self.shared.export_path, "avatar"))

        restorer = AvatarRestorer(project=self.project, shared=self.shared)
        with self.assertLogs("gatehouse.import_export", level="ERROR"):
            self.assertFalse(restorer.restore())
        self.assert_length(self.shared.errors, 1)
        self.assertIsNone(read_project_avatar_original(self.project))

    def test_avatar_file_is_missing(self) -> None:
        restorer = AvatarRestorer(project=self.project, shared=self.shared)
        with patch.object(
            AvatarRestorer, "avatar_export_file", new_callable=PropertyMock
        ) as avatar_export_file:
            avatar_export_file.return_value = "/tmp/gatehouse-test-no-such-avatar.png"
            with self.assertLogs("gatehouse.import_export", level="ERROR") as m:
                self.assertFalse(restorer.restore())

        self.assert_length(self.shared.errors, 1)
        self.assertIn("No such file or directory", self.shared.errors[0])
        self.assertTrue(
            m.output[0].startswith("ERROR:gatehouse.import_export:Import/Export error in elsinore-export:")
        )
        self.project.refresh_from_db()
        self.assertEqual(self.project.avatar_source, Project.AVATAR_FROM_GRAVATAR)
        self.assertIsNone(read_project_avatar_original(self.project))

    def test_avatar_is_not_an_image(self) -> None:
        self.write_bundle_file("avatar.png", b"this is not an image")

        restorer = AvatarRestorer(project=self.project, shared=self.shared)
        with self.assertLogs("gatehouse.import_export", level="ERROR"):
            self.assertFalse(restorer.restore())

        self.assertEqual(
            self.shared.errors, ["Could not decode image; did you upload an image file?"]
        )
        self.project.refresh_from_db()
        self.assertEqual(self.project.avatar_source, Project.AVATAR_FROM_GRAVATAR)
        self.assertIsNone(read_project_avatar_original(self.project))

    def test_errors_accumulate_across_steps(self) -> None:
        self.write_bundle_file("avatar.png", b"this is not an image")
        other_project = self.create_project("Wittenberg")

        with self.assertLogs("gatehouse.import_export", level="ERROR"):
            self.assertFalse(AvatarRestorer(project=self.project, shared=self.shared).restore())
            self.assertFalse(AvatarRestorer(project=other_project, shared=self.shared).restore())
        self.assert_length(self.shared.errors, 2)


class AvatarSaverTest(ImportExportTestCase):
    def test_saves_the_uploaded_avatar(self) -> None:
        image_data = make_test_image_data()
        self.write_bundle_file("avatar.png", image_data)
        self.assertTrue(AvatarRestorer(project=self.project, shared=self.shared).restore())

        export = ImportExportShared("elsinore-export-2")
        self.assertTrue(AvatarSaver(project=self.project, shared=export).save())

        with open(os.path.join(export.export_path, "avatar", "avatar.original"), "rb") as f:
            self.assertEqual(f.read(), image_data)

        # The saved bundle restores onto another project.
        other_project = self.create_project("Wittenberg")
        self.assertTrue(AvatarRestorer(project=other_project, shared=export).restore())
        self.assertEqual(read_project_avatar_original(other_project), image_data)

    def test_nothing_to_save(self) -> None:
        self.assertTrue(AvatarSaver(project=self.project, shared=self.shared).save())
        self.assertFalse(os.path.exists(os.path.join(self.shared.export_path, "avatar")))

    def test_uploaded_avatar_is_missing(self) -> None:
        self.project.avatar_source = Project.AVATAR_UPLOADED
        self.project.save()

        with self.assertLogs("gatehouse.import_export", level="ERROR"):
            self.assertFalse(AvatarSaver(project=self.project, shared=self.shared).save())
        self.assertEqual(
            self.shared.errors,
            [f"Avatar of project {self.project.id} is missing from the uploads directory"],
        )
