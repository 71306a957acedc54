"""
POSIX servicing operations for wdspatch
---------------------------------------

Deployment Services and DISM only exist on Windows, so the POSIX
implementation simply logs the requested operations and reports success.
The inventory is always empty.  This allows the orchestration code to
run unmodified on developer machines and in CI pipelines.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .models import ImageDescriptor
from .servicing_base import ServicingBase


class ServicingOps(ServicingBase):
    def __init__(self, dry_run: bool = False, powershell: str = "powershell.exe") -> None:
        """Initialize POSIX servicing operations (stub implementation).

        Parameters
        ----------
        dry_run : bool
            Only affects the log prefix; nothing is ever executed.
        powershell : str
            Unused on POSIX.
        """
        super().__init__(dry_run=dry_run)
        self.powershell = powershell
        self.logger = logging.getLogger("wdspatch.servicing.posix")

    @property
    def _prefix(self) -> str:
        return "[DRY-RUN]" if self.dry_run else "[POSIX]"

    def check_admin_privileges(self) -> bool:
        return True

    def list_images(self) -> List[ImageDescriptor]:
        self.logger.info("%s No Deployment Services inventory on this platform", self._prefix)
        return []

    def export_image(
        self,
        image_name: str,
        file_name: str,
        image_group: str,
        destination: str,
        new_image_name: str,
    ) -> bool:
        self.logger.info(
            "%s export_image name=%s file=%s group=%s destination=%s new_name=%s",
            self._prefix, image_name, file_name, image_group, destination, new_image_name,
        )
        return True

    def mount_image(
        self, image_path: str, mount_path: str, index: int, check_integrity: bool = True
    ) -> bool:
        self.logger.info(
            "%s mount_image path=%s mount=%s index=%d check_integrity=%s",
            self._prefix, image_path, mount_path, index, check_integrity,
        )
        return True

    def apply_package(self, package_path: str, mount_path: str) -> bool:
        self.logger.info("%s apply_package %s -> %s", self._prefix, package_path, mount_path)
        return True

    def dismount_image(self, mount_path: str, save: bool = True) -> bool:
        self.logger.info("%s dismount_image %s save=%s", self._prefix, mount_path, save)
        return True

    def import_image(
        self,
        image_group: str,
        path: str,
        new_image_name: str,
        unattend_file: Optional[str] = None,
        image_name: Optional[str] = None,
        display_order: int = 0,
    ) -> bool:
        self.logger.info(
            "%s import_image group=%s path=%s new_name=%s unattend=%s display_order=%d",
            self._prefix, image_group, path, new_image_name, unattend_file, display_order,
        )
        return True
