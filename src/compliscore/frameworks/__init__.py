"""Bundled compliance framework definitions."""

import os

BUNDLED_FRAMEWORKS_DIR = os.path.dirname(os.path.abspath(__file__))
