#===============================================================================
#  Package Cockpit | packages/comfyui.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  ComfyUI: node-based UI, tracked by branch (no releases), Python venv.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

from typing import Dict, List

from ..models import (
    EXTRAS,
    LaunchOptionDefinition,
    LaunchOptionType,
    PackageDifficulty,
    SharedFolderType,
    SharedOutputType,
)
from .git_package import PythonGitPackage

COMFYUI_LAUNCH_OPTIONS: List[LaunchOptionDefinition] = [
    LaunchOptionDefinition("Host", LaunchOptionType.STRING, ("--listen",), default="127.0.0.1"),
    LaunchOptionDefinition("Port", LaunchOptionType.STRING, ("--port",), default="8188"),
    LaunchOptionDefinition(
        "VRAM",
        LaunchOptionType.BOOL,
        ("--lowvram", "--normalvram"),
        description="Trade speed for lower VRAM usage",
    ),
    LaunchOptionDefinition("Use CPU only", LaunchOptionType.BOOL, ("--cpu",)),
    LaunchOptionDefinition("Disable Xformers", LaunchOptionType.BOOL, ("--disable-xformers",)),
    LaunchOptionDefinition("Disable upcasting of attention", LaunchOptionType.BOOL, ("--dont-upcast-attention",)),
    LaunchOptionDefinition("Auto-Launch", LaunchOptionType.BOOL, ("--auto-launch",)),
    LaunchOptionDefinition("Output Directory", LaunchOptionType.PATH, ("--output-directory",)),
    EXTRAS,
]


class ComfyUI(PythonGitPackage):
    name = "ComfyUI"
    display_name = "ComfyUI"
    author = "comfyanonymous"
    blurb = "A powerful and modular stable diffusion GUI and backend"
    repository_name = "ComfyUI"
    license_type = "GPL-3.0"
    license_url = "https://github.com/comfyanonymous/ComfyUI/blob/master/LICENSE"
    main_branch = "master"
    launch_command = "main.py"
    output_folder_name = "output"
    should_ignore_releases = True
    startup_marker = "To see the GUI go to"
    difficulty = PackageDifficulty.RECOMMENDED

    @property
    def launch_options(self) -> List[LaunchOptionDefinition]:
        return list(COMFYUI_LAUNCH_OPTIONS)

    @property
    def shared_folders(self) -> Dict[SharedFolderType, List[str]]:
        return {
            SharedFolderType.STABLE_DIFFUSION: ["models/checkpoints"],
            SharedFolderType.LORA: ["models/loras"],
            SharedFolderType.VAE: ["models/vae"],
            SharedFolderType.TEXTUAL_INVERSION: ["models/embeddings"],
            SharedFolderType.HYPERNETWORK: ["models/hypernetworks"],
            SharedFolderType.CONTROLNET: ["models/controlnet"],
            SharedFolderType.ESRGAN: ["models/upscale_models"],
            SharedFolderType.CLIP_VISION: ["models/clip_vision"],
        }

    @property
    def shared_output_folders(self) -> Dict[SharedOutputType, List[str]]:
        return {SharedOutputType.TEXT2IMG: [self.output_folder_name]}
