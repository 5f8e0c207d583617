#===============================================================================
#  Package Cockpit | models.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Shared data models used across the cockpit: installed package records,
#  version selectors, launch options and progress values.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .constants import PACKAGES_FOLDER_NAME


class SharedFolderType(str, Enum):
    """Model categories; the value is the subfolder name in the central library."""
    STABLE_DIFFUSION = "StableDiffusion"
    LORA = "Lora"
    VAE = "VAE"
    TEXTUAL_INVERSION = "TextualInversion"
    HYPERNETWORK = "Hypernetwork"
    CONTROLNET = "ControlNet"
    ESRGAN = "ESRGAN"
    CLIP_VISION = "InvokeClipVision"


class SharedOutputType(str, Enum):
    TEXT2IMG = "Text2Img"
    IMG2IMG = "Img2Img"
    EXTRAS = "Extras"
    TEXT2IMG_GRIDS = "Text2ImgGrids"
    IMG2IMG_GRIDS = "Img2ImgGrids"


class SharedFolderMethod(str, Enum):
    SYMLINK = "Symlink"
    CONFIGURATION = "Configuration"
    NONE = "None"


class TorchVariant(str, Enum):
    CPU = "cpu"
    CUDA = "cuda"
    DIRECTML = "directml"
    ROCM = "rocm"
    MPS = "mps"


class PackageDifficulty(IntEnum):
    RECOMMENDED = 0
    SIMPLE = 1
    ADVANCED = 2
    EXPERT = 3


class PackagePrerequisite(str, Enum):
    GIT = "git"
    PYTHON310 = "python310"
    DOTNET = "dotnet"
    VCREDIST = "vcredist"


class LaunchOptionType(str, Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    PATH = "path"


@dataclass(frozen=True)
class LaunchOptionDefinition:
    """One configurable launch argument.

    options holds one or more CLI templates. For BOOL definitions with two
    templates the first is used when the value is true, the second when false.
    """
    name: str
    type: LaunchOptionType
    options: Tuple[str, ...]
    default: Any = None
    description: str = ""


EXTRAS = LaunchOptionDefinition(
    name="Extra Launch Arguments",
    type=LaunchOptionType.STRING,
    options=("",),
)


@dataclass
class LaunchOption:
    """A user-chosen value for a LaunchOptionDefinition (persisted)."""
    name: str
    type: LaunchOptionType
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LaunchOption":
        return cls(
            name=data["name"],
            type=LaunchOptionType(data.get("type", LaunchOptionType.STRING.value)),
            value=data.get("value"),
        )


@dataclass(frozen=True)
class PackageVersionOptions:
    """Version selector for install/update: a release tag or a branch (+ optional commit)."""
    release_tag: Optional[str] = None
    branch: Optional[str] = None
    commit: Optional[str] = None
    is_latest: bool = False
    is_prerelease: bool = False

    @property
    def is_release(self) -> bool:
        return bool(self.release_tag)


@dataclass
class InstalledPackageVersion:
    release_version: Optional[str] = None
    branch: Optional[str] = None
    commit_sha: Optional[str] = None
    is_prerelease: bool = False

    @property
    def is_release_mode(self) -> bool:
        return bool(self.release_version)

    @property
    def display_version(self) -> str:
        if self.release_version:
            return self.release_version
        if self.branch and self.commit_sha:
            return f"{self.branch}@{self.commit_sha[:7]}"
        return self.branch or "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "release_version": self.release_version,
            "branch": self.branch,
            "commit_sha": self.commit_sha,
            "is_prerelease": self.is_prerelease,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "InstalledPackageVersion":
        data = data or {}
        return cls(
            release_version=data.get("release_version"),
            branch=data.get("branch"),
            commit_sha=data.get("commit_sha"),
            is_prerelease=bool(data.get("is_prerelease", False)),
        )


@dataclass
class InstalledPackage:
    """Persisted record of one installation (owned by the settings store)."""
    package_name: str
    display_name: str
    library_path: str                   # relative to the library dir, e.g. Packages/ComfyUI
    version: InstalledPackageVersion = field(default_factory=InstalledPackageVersion)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    last_update_check: Optional[datetime] = None
    update_available: bool = False
    launch_args: List[LaunchOption] = field(default_factory=list)
    shared_folder_method: SharedFolderMethod = SharedFolderMethod.NONE
    torch_variant: Optional[TorchVariant] = None

    def full_path(self, library_dir: Path) -> Path:
        return Path(library_dir) / self.library_path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "package_name": self.package_name,
            "display_name": self.display_name,
            "library_path": self.library_path,
            "version": self.version.to_dict(),
            "last_update_check": self.last_update_check.isoformat() if self.last_update_check else None,
            "update_available": self.update_available,
            "launch_args": [a.to_dict() for a in self.launch_args],
            "shared_folder_method": self.shared_folder_method.value,
            "torch_variant": self.torch_variant.value if self.torch_variant else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstalledPackage":
        last_check = data.get("last_update_check")
        torch = data.get("torch_variant")
        return cls(
            id=data["id"],
            package_name=data["package_name"],
            display_name=data.get("display_name") or data["package_name"],
            library_path=data.get("library_path") or f"{PACKAGES_FOLDER_NAME}/{data['package_name']}",
            version=InstalledPackageVersion.from_dict(data.get("version")),
            last_update_check=datetime.fromisoformat(last_check) if last_check else None,
            update_available=bool(data.get("update_available", False)),
            launch_args=[LaunchOption.from_dict(a) for a in data.get("launch_args") or []],
            shared_folder_method=SharedFolderMethod(
                data.get("shared_folder_method", SharedFolderMethod.NONE.value)
            ),
            torch_variant=TorchVariant(torch) if torch else None,
        )


class ProgressKind(str, Enum):
    GENERIC = "generic"
    DOWNLOAD = "download"
    INSTALL = "install"
    UPDATE = "update"


@dataclass(frozen=True)
class ProgressReport:
    """Point-in-time status of a long-running operation.

    percentage is 0..100, or -1 when unknown.
    """
    percentage: float = -1
    message: str = ""
    is_indeterminate: bool = False
    kind: ProgressKind = ProgressKind.GENERIC
    failed: bool = False

    @classmethod
    def indeterminate(cls, message: str, kind: ProgressKind = ProgressKind.GENERIC) -> "ProgressReport":
        return cls(percentage=-1, message=message, is_indeterminate=True, kind=kind)

    @property
    def percent_int(self) -> int:
        if self.percentage < 0:
            return 0
        return int(min(self.percentage, 100))


@dataclass(frozen=True)
class ProgressItem:
    """A report tagged with the operation it belongs to (published on the hub)."""
    progress_id: str
    name: str
    report: ProgressReport
    failed: bool = False


class NoticeSeverity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """User-facing outcome: short title plus full detail."""
    title: str
    message: str
    severity: NoticeSeverity = NoticeSeverity.INFO
    persistent: bool = False
