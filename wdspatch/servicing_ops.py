"""
Servicing operations abstraction
--------------------------------

This module selects the appropriate servicing backend (Windows or POSIX)
for the platform operations the updater depends on: reading the
Deployment Services inventory, exporting and importing images, mounting
and dismounting WIM files and injecting update packages.

At runtime, the correct backend is chosen based on ``sys.platform``.
On unsupported platforms the operations are implemented as no-ops with
logging.  This allows the updater to be exercised in development and
testing environments without modifying the system.
"""

from __future__ import annotations

import sys

from .servicing_base import ServicingError  # noqa: F401

if sys.platform.startswith("win"):
    from .servicing_windows import ServicingOps  # type: ignore
else:
    from .servicing_posix import ServicingOps  # type: ignore


def get_servicing_ops(dry_run: bool = False, powershell: str = "powershell.exe") -> ServicingOps:
    """Return the servicing backend for the current platform.

    Parameters
    ----------
    dry_run : bool
        If True, log mutating actions without executing them.
    powershell : str
        PowerShell executable used by the Windows backend.
    """
    return ServicingOps(dry_run=dry_run, powershell=powershell)
