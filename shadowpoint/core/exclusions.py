"""Exclusion policy for checkpoint snapshots.

Decides which paths are never captured: VCS metadata, build output, caches,
media, secrets, archives, databases, geospatial data and logs, plus git LFS
patterns declared by the workspace itself. The list is written to the shadow
repository's ``info/exclude`` file, which git reads but never commits.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Sequence


logger = logging.getLogger(__name__)

GIT_DISABLED_SUFFIX = "_disabled"

_LFS_LINE = re.compile(r"^\s*(\S+)\s+.*filter=lfs", re.MULTILINE)


def build_exclusion_list(extra_patterns: Sequence[str] = ()) -> list[str]:
    """Return the full exclusion list.

    Args:
        extra_patterns: Workspace-specific patterns (LFS, configured extras)

    Returns:
        Gitignore-style patterns, base categories first
    """
    return [
        ".git/",
        f".git{GIT_DISABLED_SUFFIX}",
        ".agent/shadowpoint/",
        *build_artifact_patterns(),
        *media_file_patterns(),
        *cache_file_patterns(),
        *config_file_patterns(),
        *large_data_file_patterns(),
        *database_file_patterns(),
        *geospatial_patterns(),
        *log_file_patterns(),
        *extra_patterns,
    ]


def build_artifact_patterns() -> list[str]:
    return [
        ".gradle/",
        ".idea/",
        ".parcel-cache/",
        ".pytest_cache/",
        ".mypy_cache/",
        ".next/",
        ".nuxt/",
        ".sass-cache/",
        ".tox/",
        ".venv/",
        ".vs/",
        ".vscode/",
        "Pods/",
        "__pycache__/",
        "bin/",
        "build/",
        "bundle/",
        "coverage/",
        "deps/",
        "dist/",
        "env/",
        "node_modules/",
        "obj/",
        "out/",
        "pkg/",
        "pycache/",
        "target/dependency/",
        "temp/",
        "vendor/",
        "venv/",
    ]


def media_file_patterns() -> list[str]:
    # SVG is usually source, so it stays tracked.
    return [
        # Images
        "*.jpg", "*.jpeg", "*.png", "*.gif", "*.bmp", "*.ico", "*.webp",
        "*.tiff", "*.tif", "*.raw", "*.heic", "*.avif", "*.eps", "*.psd",
        # Video
        "*.3gp", "*.avi", "*.divx", "*.flv", "*.m4v", "*.mkv", "*.mov",
        "*.mp4", "*.mpeg", "*.mpg", "*.ogv", "*.rm", "*.rmvb", "*.vob",
        "*.webm", "*.wmv",
        # Audio
        "*.aac", "*.aiff", "*.flac", "*.m4a", "*.mp3", "*.ogg", "*.opus",
        "*.wav", "*.wma",
    ]


def cache_file_patterns() -> list[str]:
    return [
        "*.DS_Store",
        "*.Thumbs.db",
        "*.bak",
        "*.cache",
        "*.crdownload",
        "*.dmp",
        "*.dump",
        "*.eslintcache",
        "*.lock",
        "*.log",
        "*.old",
        "*.part",
        "*.partial",
        "*.pyc",
        "*.pyo",
        "*.stackdump",
        "*.swo",
        "*.swp",
        "*.temp",
        "*.tmp",
    ]


def config_file_patterns() -> list[str]:
    """Environment files, which commonly hold secrets."""
    return [".env", ".env.*", "*.local", "*.development", "*.production"]


def large_data_file_patterns() -> list[str]:
    return [
        # Archives
        "*.zip", "*.tar", "*.gz", "*.rar", "*.7z", "*.bz2", "*.xz",
        # Disk images / installers
        "*.iso", "*.dmg", "*.msi", "*.pkg",
        # Executables / libraries
        "*.bin", "*.exe", "*.dll", "*.so", "*.dylib", "*.app",
        "*.dat", "*.data",
    ]


def database_file_patterns() -> list[str]:
    return [
        "*.db", "*.db3", "*.sqlite", "*.sqlite3", "*.mdb", "*.accdb",
        "*.sql", "*.sql.gz",
        # MySQL
        "*.ibd", "*.frm", "*.myd", "*.myi",
        # Redis
        "*.rdb", "*.aof",
        "*.pdb",
        # Columnar / tabular data
        "*.arrow", "*.avro", "*.csv", "*.tsv", "*.parquet", "*.orc", "*.bson",
        "*.dbf",
    ]


def geospatial_patterns() -> list[str]:
    return [
        # Shapefile components
        "*.shp", "*.shx", "*.prj", "*.sbn", "*.sbx", "*.shp.xml", "*.cpg",
        "*.gdb", "*.gpkg", "*.kml", "*.kmz", "*.gml", "*.geojson",
        # Raster / elevation
        "*.dem", "*.asc", "*.img", "*.ecw",
        # LiDAR
        "*.las", "*.laz",
        "*.mxd", "*.qgs",
        "*.grd",
        # CAD
        "*.dwg", "*.dxf",
    ]


def log_file_patterns() -> list[str]:
    return [
        "*.error",
        "*.log",
        "*.logs",
        "*.npm-debug.log*",
        "*.out",
        "*.stdout",
        "yarn-debug.log*",
        "yarn-error.log*",
    ]


def get_lfs_patterns(workspace: Path | str) -> list[str]:
    """Read git LFS patterns from the workspace's ``.gitattributes``.

    Args:
        workspace: Working directory root

    Returns:
        Patterns tracked with ``filter=lfs``; empty if none or unreadable
    """
    attributes_path = Path(workspace) / ".gitattributes"
    if not attributes_path.is_file():
        return []

    try:
        content = attributes_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Failed to read %s: %s", attributes_path, e)
        return []

    patterns = _LFS_LINE.findall(content)
    if patterns:
        logger.debug("Found LFS patterns in .gitattributes: %s", ", ".join(patterns))
    return patterns


def write_excludes_file(git_dir: Path | str, extra_patterns: Iterable[str] = ()) -> int:
    """Overwrite ``<git_dir>/info/exclude`` with the exclusion list.

    Failures are logged, not raised: a missing exclude file only makes
    snapshots larger.

    Args:
        git_dir: Shadow repository metadata directory
        extra_patterns: Patterns appended after the base categories

    Returns:
        Number of patterns written (0 on failure)
    """
    excludes_path = Path(git_dir) / "info" / "exclude"
    patterns = build_exclusion_list(list(extra_patterns))
    try:
        excludes_path.parent.mkdir(parents=True, exist_ok=True)
        excludes_path.write_text("\n".join(patterns) + "\n", encoding="utf-8")
    except OSError as e:
        logger.error("Failed to write excludes file at %s: %s", excludes_path, e)
        return 0

    logger.debug("Wrote %d exclusion patterns to %s", len(patterns), excludes_path)
    return len(patterns)
