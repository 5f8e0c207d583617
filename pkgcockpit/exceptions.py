#===============================================================================
#  Package Cockpit | exceptions.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Error taxonomy shared by the orchestrator, adapters and process layer.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

from typing import Optional


class CockpitError(Exception):
    """Base exception for all cockpit errors"""
    pass


class ConfigurationError(CockpitError):
    """Fatal setup problem; never retried"""
    pass


class UnknownPackageError(ConfigurationError):
    """Raised when a package type name has no registered adapter"""

    def __init__(self, package_name: Optional[str]):
        super().__init__(f"Package {package_name!r} is not a valid package type")
        self.package_name = package_name


class UnsupportedPlatformError(ConfigurationError):
    """Raised at startup when running on an OS we have no layout for"""
    pass


class ProcessError(CockpitError):
    """Raised when a child process fails to launch or exits nonzero"""

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class PrerequisiteMissingError(CockpitError):
    """Raised when git/dotnet/python are not available"""
    pass


class InstallationError(CockpitError):
    """Raised when an install or update sequence cannot complete"""
    pass


class PackageBusyError(CockpitError):
    """Raised when another install/update already holds the package"""
    pass


class PackageNotFoundError(CockpitError):
    """Raised when an installed package id is not in settings"""
    pass


class GithubApiError(CockpitError):
    """Raised when GitHub metadata cannot be fetched"""
    pass

