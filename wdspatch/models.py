"""
Data model for wdspatch
-----------------------

Plain data holders shared by the updater, the driver and the servicing
backends.  ``ImageDescriptor`` mirrors one entry of the Deployment
Services inventory; the remaining classes carry per-run configuration
and the outcome of an update so that callers can inspect what actually
happened instead of relying on console output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

CLEANUP_LEGACY = "legacy"
CLEANUP_ALWAYS = "always"
CLEANUP_POLICIES = (CLEANUP_LEGACY, CLEANUP_ALWAYS)

EXIT_OK = 0
EXIT_SETUP_FAILED = 1
EXIT_IMAGES_FAILED = 2


class Stage(str, Enum):
    """Position of an image in the update sequence."""

    EXPORTING = "exporting"
    MOUNTING = "mounting"
    PATCHING = "patching"
    SAVING = "saving"
    CLEANUP = "cleanup"
    IMPORTING = "importing"
    FINAL_CLEANUP = "final_cleanup"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ImageDescriptor:
    """One install image registered with Deployment Services."""

    image_name: str
    file_name: str
    image_group: str
    index: int
    unattend_file: Optional[str] = None

    @classmethod
    def from_inventory(cls, record: Dict[str, Any]) -> "ImageDescriptor":
        """Build a descriptor from a ``Get-WdsInstallImage`` record.

        Parameters
        ----------
        record : dict
            Mapping with the keys ``ImageName``, ``FileName``,
            ``ImageGroup``, ``Index`` and optionally ``UnattendFile``.
        """
        unattend = record.get("UnattendFile")
        return cls(
            image_name=str(record["ImageName"]),
            file_name=str(record["FileName"]),
            image_group=str(record["ImageGroup"]),
            index=int(record["Index"]),
            unattend_file=str(unattend) if unattend else None,
        )

    @property
    def has_unattend_file(self) -> bool:
        return bool(self.unattend_file and self.unattend_file.strip())


@dataclass
class UpdateSettings:
    """Explicit configuration threaded through the driver and updater.

    Parameters
    ----------
    scratch_path : str
        Working directory for exported image files and mount folders.
    wsus_content_path : str
        WSUS content directory holding one subfolder per update package.
    tool_name : str
        Name embedded in the "Updated ... via <tool>" annotation.
    cleanup_policy : str
        ``"legacy"`` keeps temporary artifacts on the failure paths where
        they were historically left behind; ``"always"`` removes whatever
        exists regardless of which step failed.
    image_filters : list of str
        Glob patterns matched against image names.  Empty selects all.
    """

    scratch_path: str
    wsus_content_path: str
    tool_name: str
    cleanup_policy: str = CLEANUP_LEGACY
    image_filters: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.cleanup_policy not in CLEANUP_POLICIES:
            raise ValueError(
                f"Unknown cleanup policy {self.cleanup_policy!r}; "
                f"expected one of {', '.join(CLEANUP_POLICIES)}"
            )


@dataclass
class PackageOutcome:
    package_path: str
    applied: bool


@dataclass
class ImageUpdateResult:
    """Outcome of updating a single image."""

    image: ImageDescriptor
    new_image_name: str
    export_destination: str
    mount_path: str
    stage: Stage = Stage.EXPORTING
    failed_stage: Optional[Stage] = None
    packages: List[PackageOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.stage is Stage.DONE

    @property
    def applied_count(self) -> int:
        return sum(1 for p in self.packages if p.applied)

    @property
    def failed_packages(self) -> List[str]:
        return [p.package_path for p in self.packages if not p.applied]


@dataclass
class RunResult:
    """Aggregate outcome of a driver run."""

    setup_ok: bool
    images: List[ImageUpdateResult] = field(default_factory=list)

    @property
    def failed_images(self) -> List[ImageUpdateResult]:
        return [r for r in self.images if not r.succeeded]

    @property
    def succeeded(self) -> bool:
        return self.setup_ok and not self.failed_images

    @property
    def exit_code(self) -> int:
        if not self.setup_ok:
            return EXIT_SETUP_FAILED
        if self.failed_images:
            return EXIT_IMAGES_FAILED
        return EXIT_OK
