#!/usr/bin/env python3
"""
WDS Image Updater
=================

Patch every install image in the Deployment Services repository with
the updates in a WSUS content folder.

Usage:
    python update_images.py                  # Prompt for scratch and WSUS paths
    python update_images.py --dry-run        # Simulate without changing images
    python update_images.py --config wdspatch.yaml

Run from an elevated prompt on the WDS server.
"""

import sys
from pathlib import Path

# Allow running from a source checkout without installing the package
sys.path.insert(0, str(Path(__file__).parent))

from wdspatch.main import main

if __name__ == "__main__":
    sys.exit(main())
