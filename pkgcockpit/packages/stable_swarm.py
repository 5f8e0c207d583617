#===============================================================================
#  Package Cockpit | packages/stable_swarm.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  SwarmUI (formerly StableSwarmUI). A .NET application built from source
#  with `dotnet build`; it drives an already installed ComfyUI as its backend.
#
#  Files written under <install>/Data:
#    Settings.fds  - IsInstalled flag + model Paths (Configuration strategy)
#    Backends.fds  - one comfyui_selfstart backend pointing at ComfyUI/main.py
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .. import fds
from ..exceptions import InstallationError, ProcessError
from ..launch_options import render_launch_args, to_arg_string
from ..models import (
    EXTRAS,
    InstalledPackage,
    LaunchOptionDefinition,
    LaunchOptionType,
    PackageDifficulty,
    PackagePrerequisite,
    PackageVersionOptions,
    SharedFolderMethod,
    SharedFolderType,
    SharedOutputType,
    TorchVariant,
)
from ..process import OutputCallback
from .base import PackageRun, ProgressCallback
from .comfyui import COMFYUI_LAUNCH_OPTIONS, ComfyUI
from .git_package import BaseGitPackage, report_progress

logger = logging.getLogger(__name__)

RELEASE_DIR = Path("src") / "bin" / "live_release"
NUGET_SOURCE = "https://api.nuget.org/v3/index.json"

# SwarmUI's own defaults, relative to its install dir
DEFAULT_PATHS: Dict[str, str] = {
    "ModelRoot": "Models",
    "SDModelFolder": "Stable-Diffusion",
    "SDLoraFolder": "Lora",
    "SDVAEFolder": "VAE",
    "SDEmbeddingFolder": "Embeddings",
    "SDControlNetsFolder": "controlnet",
    "SDClipVisionFolder": "clip_vision",
}

_PATH_FOLDER_TYPES: Dict[str, SharedFolderType] = {
    "SDModelFolder": SharedFolderType.STABLE_DIFFUSION,
    "SDLoraFolder": SharedFolderType.LORA,
    "SDVAEFolder": SharedFolderType.VAE,
    "SDEmbeddingFolder": SharedFolderType.TEXTUAL_INVERSION,
    "SDControlNetsFolder": SharedFolderType.CONTROLNET,
    "SDClipVisionFolder": SharedFolderType.CLIP_VISION,
}


class StableSwarm(BaseGitPackage):
    name = "StableSwarmUI"
    display_name = "SwarmUI"
    author = "mcmonkeyprojects"
    blurb = (
        "A Modular Stable Diffusion Web-User-Interface, with an emphasis on making "
        "powertools easily accessible, high performance, and extensibility."
    )
    repository_name = "SwarmUI"
    license_type = "MIT"
    license_url = "https://github.com/mcmonkeyprojects/SwarmUI/blob/master/LICENSE.txt"
    main_branch = "master"
    launch_command = ""
    output_folder_name = "Output"
    should_ignore_releases = True
    startup_marker = "Starting webserver"
    difficulty = PackageDifficulty.ADVANCED
    available_shared_folder_methods: Sequence[SharedFolderMethod] = (
        SharedFolderMethod.SYMLINK,
        SharedFolderMethod.CONFIGURATION,
        SharedFolderMethod.NONE,
    )
    recommended_shared_folder_method = SharedFolderMethod.CONFIGURATION
    available_torch_variants: Sequence[TorchVariant] = (
        TorchVariant.CPU,
        TorchVariant.CUDA,
        TorchVariant.DIRECTML,
        TorchVariant.ROCM,
        TorchVariant.MPS,
    )
    prerequisites: Sequence[PackagePrerequisite] = (
        PackagePrerequisite.GIT,
        PackagePrerequisite.DOTNET,
        PackagePrerequisite.PYTHON310,
        PackagePrerequisite.VCREDIST,
    )

    aspnet_env: Dict[str, str] = {
        "ASPNETCORE_ENVIRONMENT": "Production",
        "ASPNETCORE_URLS": "http://*:7801",
    }

    @property
    def launch_options(self) -> List[LaunchOptionDefinition]:
        return [
            LaunchOptionDefinition("Host", LaunchOptionType.STRING, ("--host",), default="127.0.0.1"),
            LaunchOptionDefinition("Port", LaunchOptionType.STRING, ("--port",), default="7801"),
            LaunchOptionDefinition("Ngrok Path", LaunchOptionType.STRING, ("--ngrok-path",)),
            LaunchOptionDefinition("Ngrok Basic Auth", LaunchOptionType.STRING, ("--ngrok-basic-auth",)),
            LaunchOptionDefinition("Cloudflared Path", LaunchOptionType.STRING, ("--cloudflared-path",)),
            LaunchOptionDefinition("Proxy Region", LaunchOptionType.STRING, ("--proxy-region",)),
            LaunchOptionDefinition(
                "Launch Mode",
                LaunchOptionType.BOOL,
                ("--launch-mode web", "--launch-mode webinstall"),
            ),
            EXTRAS,
        ]

    @property
    def shared_folders(self) -> Dict[SharedFolderType, List[str]]:
        return {
            SharedFolderType.STABLE_DIFFUSION: ["Models/Stable-Diffusion"],
            SharedFolderType.LORA: ["Models/Lora"],
            SharedFolderType.VAE: ["Models/VAE"],
            SharedFolderType.TEXTUAL_INVERSION: ["Models/Embeddings"],
            SharedFolderType.CONTROLNET: ["Models/controlnet"],
            SharedFolderType.CLIP_VISION: ["Models/clip_vision"],
        }

    @property
    def shared_output_folders(self) -> Dict[SharedOutputType, List[str]]:
        return {SharedOutputType.TEXT2IMG: [self.output_folder_name]}

    # ------------------------------------------------------------------
    # Data/*.fds
    # ------------------------------------------------------------------
    @staticmethod
    def settings_path(install_dir: Path) -> Path:
        return Path(install_dir) / "Data" / "Settings.fds"

    @staticmethod
    def backends_path(install_dir: Path) -> Path:
        return Path(install_dir) / "Data" / "Backends.fds"

    def configured_paths(self) -> Dict[str, str]:
        models = self.settings.models_dir
        paths = {"ModelRoot": str(models)}
        for key, folder_type in _PATH_FOLDER_TYPES.items():
            paths[key] = str(models / folder_type.value)
        return paths

    def _load_settings_file(self, install_dir: Path) -> fds.FdsSection:
        path = self.settings_path(install_dir)
        if path.exists():
            return fds.read_file(path)
        return fds.FdsSection()

    def _write_paths(self, install_dir: Path, paths: Dict[str, str]) -> None:
        section = self._load_settings_file(install_dir)
        section.set("IsInstalled", True)
        section.set("Paths", fds.FdsSection(dict(paths)))
        section.save_to_file(self.settings_path(install_dir))

    def write_backends(self, install_dir: Path, comfy: InstalledPackage) -> None:
        comfy_main = comfy.full_path(self.settings.library_dir) / ComfyUI.launch_command
        start_script = Path(os.path.relpath(comfy_main, install_dir)).as_posix()
        extra_args = to_arg_string(render_launch_args(COMFYUI_LAUNCH_OPTIONS, comfy.launch_args))

        backend = fds.FdsSection()
        backend.set("type", "comfyui_selfstart")
        backend.set("title", "Package Cockpit ComfyUI Self-Start")
        backend.set("enabled", True)
        backend.set("settings", fds.FdsSection({
            "StartScript": start_script,
            "DisableInternalArgs": False,
            "AutoUpdate": False,
            "ExtraArgs": extra_args,
        }))

        backends = fds.FdsSection()
        backends.set("0", backend)
        backends.save_to_file(self.backends_path(install_dir))

    # ------------------------------------------------------------------
    # Install / build
    # ------------------------------------------------------------------
    def _installed_comfy(self) -> Optional[InstalledPackage]:
        for package in self.settings.installed_packages:
            if package.package_name == ComfyUI.name:
                return package
        return None

    @staticmethod
    def project_file(install_dir: Path) -> str:
        if (Path(install_dir) / "src" / "SwarmUI.csproj").exists():
            return "src/SwarmUI.csproj"
        return "src/StableSwarmUI.csproj"

    @staticmethod
    def dll_path(install_dir: Path) -> Path:
        release = Path(install_dir) / RELEASE_DIR
        if (release / "SwarmUI.dll").exists():
            return release / "SwarmUI.dll"
        return release / "StableSwarmUI.dll"

    async def build(self, install_dir: Path, on_output: Optional[OutputCallback] = None) -> None:
        try:
            await self.prerequisite_runner.run_dotnet(
                ["nuget", "add", "source", NUGET_SOURCE, "--name", "NuGet official package source"],
                cwd=install_dir,
                on_output=on_output,
            )
        except ProcessError as e:
            # usually "source already exists"
            logger.debug(f"nuget add source: {e}")

        await self.prerequisite_runner.run_dotnet(
            ["build", self.project_file(install_dir), "--configuration", "Release", "-o", RELEASE_DIR.as_posix()],
            cwd=install_dir,
            on_output=on_output,
        )

    async def install_package(
        self,
        install_dir: Path,
        torch_variant: TorchVariant,
        shared_folder_method: SharedFolderMethod,
        version: PackageVersionOptions,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        comfy = self._installed_comfy()
        if comfy is None:
            raise InstallationError("ComfyUI must be installed to use SwarmUI")

        report_progress(progress, -1, "Building SwarmUI...")
        await self.build(install_dir, on_output)

        if shared_folder_method is SharedFolderMethod.CONFIGURATION:
            self._write_paths(install_dir, self.configured_paths())
        else:
            self._write_paths(install_dir, DEFAULT_PATHS)
        self.write_backends(install_dir, comfy)

    async def update_dependencies(
        self,
        install_dir: Path,
        torch_variant: TorchVariant,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        report_progress(progress, -1, "Rebuilding SwarmUI...")
        await self.build(install_dir, on_output)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    async def run(
        self,
        install_dir: Path,
        command: str,
        arguments: Sequence[str],
        run: PackageRun,
    ) -> PackageRun:
        dll = self.dll_path(install_dir)
        if not dll.exists():
            raise InstallationError(f"{dll} not found; rebuild {self.display_name} with an update")
        run.process = await self.prerequisite_runner.start_dotnet(
            [str(dll), *arguments],
            cwd=install_dir,
            env=self.aspnet_env,
            on_output=run.handle_console_line,
        )
        return run

    # ------------------------------------------------------------------
    # Shared folders
    # ------------------------------------------------------------------
    async def setup_model_folders(self, install_dir: Path, method: SharedFolderMethod) -> None:
        if method is SharedFolderMethod.CONFIGURATION:
            self._write_paths(install_dir, self.configured_paths())
        elif method is SharedFolderMethod.SYMLINK:
            await super().setup_model_folders(install_dir, method)

    async def remove_model_folder_links(self, install_dir: Path, method: SharedFolderMethod) -> None:
        if method is SharedFolderMethod.CONFIGURATION:
            self._write_paths(install_dir, DEFAULT_PATHS)
        elif method is SharedFolderMethod.SYMLINK:
            await super().remove_model_folder_links(install_dir, method)
