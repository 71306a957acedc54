"""Global pytest fixtures and configuration."""

import locale
import os
from datetime import date
from typing import List, Optional

import pytest

from wdspatch.models import ImageDescriptor, UpdateSettings
from wdspatch.servicing_base import ServicingBase, ServicingError

FIXED_DAY = date(2024, 3, 5)


class FakeServicingOps(ServicingBase):
    """Records every servicing call; individual steps can be made to fail.

    ``fail`` maps an operation name to a set of image/package keys for
    which that operation returns False.  A dismount with ``save=False``
    is looked up under ``"discard"``.  The export step writes a real
    file so that cleanup of the export destination can be checked.
    """

    def __init__(self, images: Optional[List[ImageDescriptor]] = None):
        super().__init__(dry_run=False)
        self.images = list(images or [])
        self.calls: List[tuple] = []
        self.fail = {}
        self.inventory_error = False

    def _fails(self, op, key):
        return key in self.fail.get(op, ())

    def check_admin_privileges(self):
        return True

    def list_images(self):
        self.calls.append(("list_images",))
        if self.inventory_error:
            raise ServicingError("inventory unavailable")
        return list(self.images)

    def list_update_packages(self, content_path):
        self.calls.append(("list_update_packages", content_path))
        return super().list_update_packages(content_path)

    def export_image(self, image_name, file_name, image_group, destination, new_image_name):
        self.calls.append(("export", image_name, file_name, image_group, destination, new_image_name))
        if self._fails("export", image_name):
            return False
        with open(destination, "w") as f:
            f.write("wim")
        return True

    def mount_image(self, image_path, mount_path, index, check_integrity=True):
        self.calls.append(("mount", image_path, mount_path, index, check_integrity))
        return not self._fails("mount", image_path)

    def apply_package(self, package_path, mount_path):
        self.calls.append(("apply", os.path.basename(package_path), mount_path))
        return not self._fails("apply", os.path.basename(package_path))

    def dismount_image(self, mount_path, save=True):
        self.calls.append(("dismount", mount_path, save))
        if save:
            return not self._fails("dismount", mount_path)
        return not self._fails("discard", mount_path)

    def import_image(self, image_group, path, new_image_name, unattend_file=None,
                     image_name=None, display_order=0):
        self.calls.append(("import", image_group, path, new_image_name,
                           unattend_file, image_name, display_order))
        return not self._fails("import", new_image_name)

    def call_names(self):
        return [c[0] for c in self.calls]


@pytest.fixture(autouse=True)
def restore_time_locale():
    saved = locale.setlocale(locale.LC_TIME)
    yield
    locale.setlocale(locale.LC_TIME, saved)


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return str(path)


@pytest.fixture
def content_dir(tmp_path):
    """WSUS content folder with two package folders and a stray file."""
    path = tmp_path / "WsusContent"
    (path / "KB1").mkdir(parents=True)
    (path / "KB2").mkdir()
    (path / "readme.txt").write_text("not a package")
    return str(path)


@pytest.fixture
def sample_image():
    return ImageDescriptor(
        image_name="Win10 Pro | base",
        file_name="install.wim",
        image_group="G1",
        index=1,
        unattend_file="",
    )


@pytest.fixture
def fake_ops(sample_image):
    return FakeServicingOps([sample_image])


@pytest.fixture
def settings(scratch_dir, content_dir):
    return UpdateSettings(
        scratch_path=scratch_dir,
        wsus_content_path=content_dir,
        tool_name="wdspatch",
    )


@pytest.fixture
def today():
    return lambda: FIXED_DAY
