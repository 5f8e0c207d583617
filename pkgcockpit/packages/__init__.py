#===============================================================================
#  Package Cockpit | packages/__init__.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Closed registry of built-in package adapters. One adapter instance per
#  type, created up-front; unknown names raise UnknownPackageError.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

from typing import Dict, List, Tuple, Type

from ..exceptions import UnknownPackageError
from ..github_api import GithubApi
from ..prerequisites import PrerequisiteRunner
from ..settings import SettingsStore
from .a1111 import StableDiffusionWebUI
from .base import BasePackage, PackageRun
from .comfyui import ComfyUI
from .git_package import BaseGitPackage, PythonGitPackage
from .stable_swarm import StableSwarm

PACKAGE_TYPES: Tuple[Type[BasePackage], ...] = (
    ComfyUI,
    StableDiffusionWebUI,
    StableSwarm,
)


class PackageFactory:
    """Maps adapter name -> the single adapter instance for that type."""

    def __init__(self, prerequisite_runner: PrerequisiteRunner, settings: SettingsStore, github_api: GithubApi):
        self._packages: Dict[str, BasePackage] = {
            cls.name: cls(prerequisite_runner, settings, github_api) for cls in PACKAGE_TYPES
        }

    def __contains__(self, name: str) -> bool:
        return name in self._packages

    def get(self, name: str) -> BasePackage:
        try:
            return self._packages[name]
        except KeyError:
            raise UnknownPackageError(name) from None

    def all(self) -> List[BasePackage]:
        return list(self._packages.values())

    def names(self) -> List[str]:
        return list(self._packages)


__all__ = [
    "PACKAGE_TYPES",
    "BaseGitPackage",
    "BasePackage",
    "ComfyUI",
    "PackageFactory",
    "PackageRun",
    "PythonGitPackage",
    "StableDiffusionWebUI",
    "StableSwarm",
]
