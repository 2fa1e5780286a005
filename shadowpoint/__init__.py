"""Shadowpoint - shadow git checkpoints for a working directory.

Snapshots a directory into a hidden git repository kept outside it, so any
snapshot can be diffed or restored without touching the directory's own
version control.
"""

__version__ = "1.0.0"
__author__ = "ain3sh"
