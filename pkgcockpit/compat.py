#===============================================================================
#  Package Cockpit | compat.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Platform detection and exhaustive per-platform value selection.
#  The platform is resolved once when this module is imported; an unknown OS
#  fails here, at startup, instead of deep inside an install.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import sys
from enum import Enum
from typing import Optional, TypeVar

from .exceptions import UnsupportedPlatformError

T = TypeVar("T")


class PlatformKind(str, Enum):
    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"


def detect_platform(platform_name: Optional[str] = None) -> PlatformKind:
    """Map sys.platform onto one of the three supported kinds."""
    name = platform_name if platform_name is not None else sys.platform
    if name.startswith("win"):
        return PlatformKind.WINDOWS
    if name.startswith("linux"):
        return PlatformKind.LINUX
    if name == "darwin":
        return PlatformKind.MACOS
    raise UnsupportedPlatformError(f"Unsupported platform: {name!r}")


CURRENT_PLATFORM = detect_platform()


def switch(*, windows: T, linux: T, macos: T, platform: Optional[PlatformKind] = None) -> T:
    """Pick the value for the running (or given) platform.

    All three branches are required keyword arguments, so adding a platform
    means touching every call site.
    """
    kind = platform or CURRENT_PLATFORM
    if kind is PlatformKind.WINDOWS:
        return windows
    if kind is PlatformKind.LINUX:
        return linux
    if kind is PlatformKind.MACOS:
        return macos
    raise UnsupportedPlatformError(f"Unsupported platform: {kind!r}")


def is_windows() -> bool:
    return CURRENT_PLATFORM is PlatformKind.WINDOWS
