#===============================================================================
#  Package Cockpit | packages/a1111.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  AUTOMATIC1111 Stable Diffusion WebUI. Installs from the latest release tag
#  (or a branch when asked), dependencies pinned by requirements_versions.txt.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

from typing import Dict, List, Sequence

from ..models import (
    EXTRAS,
    LaunchOptionDefinition,
    LaunchOptionType,
    PackageDifficulty,
    SharedFolderType,
    SharedOutputType,
    TorchVariant,
)
from .git_package import PythonGitPackage


class StableDiffusionWebUI(PythonGitPackage):
    name = "stable-diffusion-webui"
    display_name = "Stable Diffusion WebUI"
    author = "AUTOMATIC1111"
    blurb = "A browser interface based on Gradio library for Stable Diffusion"
    repository_name = "stable-diffusion-webui"
    license_type = "AGPL-3.0"
    license_url = "https://github.com/AUTOMATIC1111/stable-diffusion-webui/blob/master/LICENSE.txt"
    main_branch = "master"
    launch_command = "launch.py"
    output_folder_name = "outputs"
    should_ignore_releases = False
    startup_marker = "Running on local URL"
    difficulty = PackageDifficulty.SIMPLE
    requirements_file = "requirements_versions.txt"
    # extensions rely on tkinter from the base interpreter
    use_queried_tcltk = True
    available_torch_variants: Sequence[TorchVariant] = (
        TorchVariant.CPU,
        TorchVariant.CUDA,
        TorchVariant.ROCM,
        TorchVariant.MPS,
    )

    @property
    def launch_options(self) -> List[LaunchOptionDefinition]:
        return [
            LaunchOptionDefinition("Host", LaunchOptionType.STRING, ("--server-name",), default="localhost"),
            LaunchOptionDefinition("Port", LaunchOptionType.STRING, ("--port",), default="7860"),
            LaunchOptionDefinition("Xformers", LaunchOptionType.BOOL, ("--xformers",)),
            LaunchOptionDefinition("API", LaunchOptionType.BOOL, ("--api",), default=True),
            LaunchOptionDefinition("Auto Launch Web UI", LaunchOptionType.BOOL, ("--autolaunch",)),
            LaunchOptionDefinition("Skip Torch CUDA Check", LaunchOptionType.BOOL, ("--skip-torch-cuda-test",)),
            LaunchOptionDefinition("No Half", LaunchOptionType.BOOL, ("--no-half",)),
            LaunchOptionDefinition(
                "Skip Python Version Check", LaunchOptionType.BOOL, ("--skip-python-version-check",), default=True
            ),
            LaunchOptionDefinition(
                "Skip Prepare Environment",
                LaunchOptionType.BOOL,
                ("--skip-prepare-environment",),
                default=True,
                description="Dependencies are managed by the cockpit venv",
            ),
            EXTRAS,
        ]

    @property
    def shared_folders(self) -> Dict[SharedFolderType, List[str]]:
        return {
            SharedFolderType.STABLE_DIFFUSION: ["models/Stable-diffusion"],
            SharedFolderType.LORA: ["models/Lora"],
            SharedFolderType.VAE: ["models/VAE"],
            SharedFolderType.TEXTUAL_INVERSION: ["embeddings"],
            SharedFolderType.HYPERNETWORK: ["models/hypernetworks"],
            SharedFolderType.CONTROLNET: ["models/ControlNet"],
            SharedFolderType.ESRGAN: ["models/ESRGAN"],
        }

    @property
    def shared_output_folders(self) -> Dict[SharedOutputType, List[str]]:
        return {
            SharedOutputType.TEXT2IMG: ["outputs/txt2img-images"],
            SharedOutputType.IMG2IMG: ["outputs/img2img-images"],
            SharedOutputType.EXTRAS: ["outputs/extras-images"],
            SharedOutputType.TEXT2IMG_GRIDS: ["outputs/txt2img-grids"],
            SharedOutputType.IMG2IMG_GRIDS: ["outputs/img2img-grids"],
        }
