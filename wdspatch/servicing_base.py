"""
Shared pieces of the servicing backends.

``ServicingBase`` implements the operations that only touch the local
filesystem so that the Windows and POSIX backends enumerate update
packages identically.
"""

from __future__ import annotations

import logging
import os
from typing import List


class ServicingError(RuntimeError):
    """Raised when a servicing operation cannot produce a usable result."""


class ServicingBase:
    """Filesystem operations common to every backend."""

    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self.logger = logging.getLogger("wdspatch.servicing")

    def list_update_packages(self, content_path: str) -> List[str]:
        """Return the update package folders below ``content_path``.

        Each subfolder of a WSUS content directory holds one update.
        Plain files are skipped.  Folders are returned sorted by name so
        that repeated runs apply packages in the same order.

        Raises
        ------
        ServicingError
            If the content directory cannot be read.
        """
        try:
            with os.scandir(content_path) as entries:
                folders = [entry.path for entry in entries if entry.is_dir()]
        except OSError as exc:
            raise ServicingError(
                f"Cannot read WSUS content directory {content_path}: {exc}"
            ) from exc
        folders.sort(key=lambda p: os.path.basename(p).lower())
        self.logger.debug("Found %d package folder(s) in %s", len(folders), content_path)
        return folders
