#!/usr/bin/env python3
# termbridge/version.py
"""
Version metadata for termbridge.
"""

__version__ = "0.3.0"
__build__ = "2026-10-19"
__license__ = "MIT"

def version_info() -> str:
    """Return human-readable version string."""
    return f"termbridge v{__version__} (build {__build__})"
