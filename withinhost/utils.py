"""Utility functions for withinhost-timing.

Run provenance helpers: configuration digest and git hash.
"""

from __future__ import annotations

import hashlib
import subprocess

import yaml

from withinhost.config import StudyConfig


def config_yaml(config: StudyConfig) -> str:
    """Canonical YAML text of a configuration (sorted keys)."""
    return yaml.safe_dump(config.to_dict(), sort_keys=True)


def config_hash(config: StudyConfig) -> str:
    """SHA-256 of the canonical YAML text (for result tagging)."""
    return hashlib.sha256(config_yaml(config).encode('utf-8')).hexdigest()


def get_git_hash() -> str:
    """Return the current git commit hash, or 'unknown' if not in a repo."""
    try:
        result = subprocess.run(
            ['git', 'rev-parse', 'HEAD'],
            capture_output=True, text=True, timeout=5,
        )
        return result.stdout.strip() if result.returncode == 0 else 'unknown'
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return 'unknown'
