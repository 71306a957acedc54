"""
Per-image updater
-----------------

Applies every update package from the WSUS content directory to one
install image and registers the patched copy with Deployment Services.
The sequence is fixed and strictly linear::

    export -> mount -> patch -> dismount/save -> remove mount folder
           -> import -> remove export file

Export, mount, dismount and import are checked; the first of them to
fail stops the sequence for that image.  Package injection is never
checked against the sequence: a package that fails to apply is recorded
in the result and the next package is attempted.

The original image entry is left untouched in the repository whatever
happens, because the patched copy is imported under a new name.
"""

from __future__ import annotations

import logging
import os
import shutil
from datetime import date
from typing import Callable, Optional

from . import naming
from .models import (
    CLEANUP_ALWAYS,
    ImageDescriptor,
    ImageUpdateResult,
    PackageOutcome,
    Stage,
    UpdateSettings,
)
from .servicing_base import ServicingError


class ImageUpdater:
    """Run the update sequence for single images.

    Parameters
    ----------
    settings : UpdateSettings
        Scratch and content paths, tool name and cleanup policy.
    ops : ServicingOps
        Servicing backend performing the platform operations.
    today : callable, optional
        Returns the date recorded in the new image name.  Defaults to
        ``date.today``.
    """

    def __init__(
        self,
        settings: UpdateSettings,
        ops,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.settings = settings
        self.ops = ops
        self.today = today or date.today
        self.logger = logging.getLogger("wdspatch.updater")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def update(self, image: ImageDescriptor) -> ImageUpdateResult:
        """Update one image and return what happened.

        Parameters
        ----------
        image : ImageDescriptor
            Inventory entry of the image to update.

        Returns
        -------
        ImageUpdateResult
            ``succeeded`` is True only if the patched image was imported.
        """
        scratch = self.settings.scratch_path
        result = ImageUpdateResult(
            image=image,
            new_image_name=naming.new_image_name(
                image.image_name, self.settings.tool_name, self.today()
            ),
            export_destination=naming.export_destination(scratch, image.file_name),
            mount_path=naming.mount_path(scratch, image.image_name),
        )
        self.logger.info("=== Updating image: %s ===", image.image_name)
        self.logger.info("New image name: %s", result.new_image_name)

        if not self._export(result):
            return self._fail(result, mounted=False)
        if not self._mount(result):
            return self._fail(result, mounted=False)
        self._apply_packages(result)
        if not self._dismount(result):
            return self._fail(result, mounted=True)

        result.stage = Stage.CLEANUP
        self.logger.info("Removing mount folder %s", result.mount_path)
        if self._remove_path(result.mount_path):
            self.logger.info("✓ Mount folder removed")

        if not self._import(result):
            return self._fail(result, mounted=False)

        result.stage = Stage.FINAL_CLEANUP
        self.logger.info("Removing exported file %s", result.export_destination)
        self._remove_path(result.export_destination)

        result.stage = Stage.DONE
        self.logger.info(
            "=== Image updated: %s (%d/%d packages applied) ===",
            result.new_image_name,
            result.applied_count,
            len(result.packages),
        )
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _export(self, result: ImageUpdateResult) -> bool:
        image = result.image
        result.stage = Stage.EXPORTING
        self.logger.info(
            "Exporting %s (%s, group %s) to %s",
            image.image_name, image.file_name, image.image_group, result.export_destination,
        )
        ok = self.ops.export_image(
            image_name=image.image_name,
            file_name=image.file_name,
            image_group=image.image_group,
            destination=result.export_destination,
            new_image_name=result.new_image_name,
        )
        if not ok:
            self.logger.error("Export of %s failed", image.image_name)
            return False
        self.logger.info("✓ Image exported")
        return True

    def _mount(self, result: ImageUpdateResult) -> bool:
        result.stage = Stage.MOUNTING
        if not os.path.exists(result.mount_path):
            try:
                os.makedirs(result.mount_path)
            except OSError as exc:
                self.logger.error("Could not create mount folder %s: %s", result.mount_path, exc)
                return False

        self.logger.info(
            "Mounting %s (index %d) at %s",
            result.export_destination, result.image.index, result.mount_path,
        )
        ok = self.ops.mount_image(
            image_path=result.export_destination,
            mount_path=result.mount_path,
            index=result.image.index,
            check_integrity=True,
        )
        if not ok:
            self.logger.error("Mounting %s failed", result.export_destination)
            return False
        self.logger.info("✓ Image mounted")
        return True

    def _apply_packages(self, result: ImageUpdateResult) -> None:
        result.stage = Stage.PATCHING
        content = self.settings.wsus_content_path
        try:
            packages = self.ops.list_update_packages(content)
        except ServicingError as exc:
            self.logger.warning("%s; no packages applied", exc)
            return

        self.logger.info("Applying %d update package(s) from %s", len(packages), content)
        for package in packages:
            self.logger.debug("Applying %s", package)
            applied = bool(self.ops.apply_package(package_path=package, mount_path=result.mount_path))
            result.packages.append(PackageOutcome(package_path=package, applied=applied))
            if not applied:
                self.logger.debug("Package not applied: %s", package)
        self.logger.info(
            "✓ Package pass complete: %d applied, %d not applied",
            result.applied_count,
            len(result.failed_packages),
        )

    def _dismount(self, result: ImageUpdateResult) -> bool:
        result.stage = Stage.SAVING
        self.logger.info("Dismounting %s and saving changes", result.mount_path)
        if not self.ops.dismount_image(mount_path=result.mount_path, save=True):
            self.logger.error("Dismounting %s failed", result.mount_path)
            return False
        self.logger.info("✓ Image dismounted and saved")
        return True

    def _import(self, result: ImageUpdateResult) -> bool:
        image = result.image
        result.stage = Stage.IMPORTING
        self.logger.info(
            "Importing %s into group %s as %s",
            result.export_destination, image.image_group, result.new_image_name,
        )
        kwargs = {}
        if image.has_unattend_file:
            kwargs["unattend_file"] = image.unattend_file
            kwargs["image_name"] = image.image_name
        ok = self.ops.import_image(
            image_group=image.image_group,
            path=result.export_destination,
            new_image_name=result.new_image_name,
            display_order=0,
            **kwargs,
        )
        if not ok:
            self.logger.error("Import of %s failed", result.new_image_name)
            return False
        self.logger.info("✓ Image imported")
        return True

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------
    def _fail(self, result: ImageUpdateResult, mounted: bool) -> ImageUpdateResult:
        """Mark ``result`` failed at its current stage.

        Under the ``always`` cleanup policy any temporary artifacts are
        removed as well; an image still mounted is dismounted discarding
        its changes first.  If that discard fails too, the mount folder
        and the exported file are left alone.  Under ``legacy`` they stay
        where they are.
        """
        result.failed_stage = result.stage
        result.stage = Stage.FAILED
        self.logger.error(
            "Update of %s stopped at stage '%s'",
            result.image.image_name,
            result.failed_stage.value,
        )

        if self.settings.cleanup_policy == CLEANUP_ALWAYS:
            self.logger.info("Cleaning up temporary files for %s", result.image.image_name)
            if mounted and not self.ops.dismount_image(mount_path=result.mount_path, save=False):
                # The image is still mounted; its folder and file are in use.
                self.logger.warning("Could not discard mounted image at %s", result.mount_path)
                self._report_leftovers(result)
                return result
            self._remove_path(result.mount_path)
            self._remove_path(result.export_destination)
        else:
            self._report_leftovers(result)
        return result

    def _report_leftovers(self, result: ImageUpdateResult) -> None:
        for leftover in (result.mount_path, result.export_destination):
            if os.path.lexists(leftover):
                self.logger.warning("Temporary path left in place: %s", leftover)

    def _remove_path(self, path: str) -> bool:
        """Remove a file or directory tree, logging any failure."""
        if not os.path.lexists(path):
            return True
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                shutil.rmtree(path)
            else:
                os.remove(path)
        except OSError as exc:
            self.logger.warning("Could not remove %s: %s", path, exc)
            return False
        return True


def update_image(
    image: ImageDescriptor,
    settings: UpdateSettings,
    ops,
    today: Optional[Callable[[], date]] = None,
) -> ImageUpdateResult:
    """Convenience wrapper around ``ImageUpdater(...).update(image)``."""
    return ImageUpdater(settings, ops, today=today).update(image)
