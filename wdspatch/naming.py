"""
Path and name derivation for image updates.

All values are computed once per image at the start of its update and
are not recomputed later in the sequence.
"""

from __future__ import annotations

import locale
import logging
import os
import re
import sys
import zlib
from datetime import date
from typing import Optional

ANNOTATION_SEPARATOR = "|"
_INVALID_PATH_CHARS = re.compile(r'[<>:"/\\|?*]')

logger = logging.getLogger("wdspatch.naming")


def default_tool_name() -> str:
    """Return the name the program was invoked under."""
    name = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else ""
    return name or "wdspatch"


def export_destination(scratch_path: str, file_name: str) -> str:
    return os.path.join(scratch_path, file_name)


def mount_path(scratch_path: str, image_name: str) -> str:
    """Mount folder for an image, named after the image.

    Characters Windows does not allow in file names (image names carry
    a ``|`` once annotated) are replaced with ``_``.  When that happens a
    checksum of the original name is appended, so ``A|B`` and ``A_B`` get
    different folders.
    """
    folder = _INVALID_PATH_CHARS.sub("_", image_name).strip()
    if folder != image_name:
        folder = f"{folder}-{zlib.crc32(image_name.encode('utf-8')):08x}"
    return os.path.join(scratch_path, folder)


def base_image_name(image_name: str) -> str:
    """Strip any ``|`` annotation from an image name."""
    return image_name.split(ANNOTATION_SEPARATOR, 1)[0].strip()


def new_image_name(
    image_name: str, tool_name: str, when: Optional[date] = None
) -> str:
    """Derive the name an updated image is re-imported under.

    Everything from the first ``|`` onward is discarded, so running the
    updater again on an already annotated image replaces the previous
    annotation instead of stacking a second one.

    Parameters
    ----------
    image_name : str
        Current display name of the image.
    tool_name : str
        Name of the tool recorded in the annotation.
    when : date, optional
        Date to record.  Defaults to today; rendered in the locale's
        short date format.
    """
    when = when or date.today()
    stamp = when.strftime("%x")
    return (
        f"{base_image_name(image_name)} {ANNOTATION_SEPARATOR} "
        f"(Updated {stamp} via {tool_name})"
    )


def use_system_date_format() -> bool:
    """Switch ``LC_TIME`` to the operator's regional settings.

    Python starts in the C locale, so ``%x`` renders ``03/05/24`` until
    this is called.

    Returns
    -------
    bool
        False if the configured locale is not available.
    """
    try:
        locale.setlocale(locale.LC_TIME, "")
    except locale.Error as exc:
        logger.warning("Could not apply the system date format: %s", exc)
        return False
    return True
