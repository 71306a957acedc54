"""wdspatch package initializer.

Patches Windows Deployment Services install images offline with the
update packages of a WSUS content mirror.  The high-level APIs are
re-exported here for convenience.
"""

from . import config as config  # noqa: F401
from .driver import run_updates  # noqa: F401
from .models import ImageDescriptor, ImageUpdateResult, RunResult, UpdateSettings  # noqa: F401
from .servicing_ops import ServicingError, get_servicing_ops  # noqa: F401
from .updater import ImageUpdater, update_image  # noqa: F401

__version__ = "1.0.0"
