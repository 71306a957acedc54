"""
Batch driver
------------

Prepares the scratch directory, reads the Deployment Services inventory
and runs the per-image updater for every image, one after another.  A
failed image never stops the batch; the aggregate outcome is returned as
a ``RunResult`` so callers can report it and pick an exit status.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from datetime import date
from typing import Callable, List, Optional

from .models import ImageDescriptor, RunResult, UpdateSettings
from .servicing_base import ServicingError
from .updater import ImageUpdater

logger = logging.getLogger("wdspatch.driver")


def ensure_scratch_directory(path: str) -> bool:
    """Create the scratch directory if it does not exist.

    Returns
    -------
    bool
        True if the directory exists afterwards.
    """
    if os.path.isdir(path):
        return True
    logger.info("Creating scratch folder %s", path)
    try:
        os.makedirs(path)
    except OSError as exc:
        logger.error("Could not create scratch folder %s: %s", path, exc)
        return False
    logger.info("✓ Scratch folder created")
    return True


def select_images(images: List[ImageDescriptor], patterns: List[str]) -> List[ImageDescriptor]:
    """Keep the images whose name matches any of ``patterns``.

    An empty pattern list selects every image.  Matching is
    case-insensitive, like image names in Deployment Services.
    """
    if not patterns:
        return list(images)
    lowered = [p.lower() for p in patterns]
    return [
        image
        for image in images
        if any(fnmatch.fnmatchcase(image.image_name.lower(), p) for p in lowered)
    ]


def run_updates(
    settings: UpdateSettings,
    ops,
    today: Optional[Callable[[], date]] = None,
) -> RunResult:
    """Update every installed image.

    Parameters
    ----------
    settings : UpdateSettings
        Paths, tool name, cleanup policy and image filters.
    ops : ServicingOps
        Servicing backend.
    today : callable, optional
        Date source for the new image names (used by tests).

    Returns
    -------
    RunResult
        ``setup_ok`` is False if the scratch folder could not be created
        or the inventory could not be read; in that case no image is
        processed.
    """
    if not ensure_scratch_directory(settings.scratch_path):
        return RunResult(setup_ok=False)

    try:
        images = ops.list_images()
    except ServicingError as exc:
        logger.error("%s", exc)
        return RunResult(setup_ok=False)

    selected = select_images(images, settings.image_filters)
    logger.info(
        "Found %d installed image(s), %d selected for update", len(images), len(selected)
    )

    run = RunResult(setup_ok=True)
    updater = ImageUpdater(settings, ops, today=today)
    for position, image in enumerate(selected, start=1):
        logger.info("[%d/%d] %s", position, len(selected), image.image_name)
        run.images.append(updater.update(image))

    _log_summary(run)
    return run


def _log_summary(run: RunResult) -> None:
    failed = run.failed_images
    logger.info("=== Summary ===")
    logger.info("Images updated: %d", len(run.images) - len(failed))
    for result in failed:
        logger.error(
            "Image failed: %s (stage: %s)",
            result.image.image_name,
            result.failed_stage.value if result.failed_stage else "unknown",
        )
    for result in run.images:
        for package in result.failed_packages:
            logger.warning("%s: package not applied: %s", result.image.image_name, package)
