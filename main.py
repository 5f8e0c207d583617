#===============================================================================
#  Package Cockpit  |  Generative-Art Package Manager
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Installs, updates and launches third-party generative-art web UIs
#  (ComfyUI, Stable Diffusion WebUI, SwarmUI) from their git repositories into
#  a single library folder, sharing one model library between them.
#
#  Folder Conventions
#  ------------------
#    <library>/                         ($PKGCOCKPIT_HOME or ~/.pkgcockpit)
#      - settings.json                  -> installed packages + options
#      - Packages/<name>/               -> one git checkout per install
#      - Models/<type>/                 -> shared model library
#      - Outputs/<type>/                -> shared outputs
#      - Assets/                        -> optional bundled git/dotnet/Python310
#      - logs/cockpit.log
#
#  Copyright & License Notes
#  -------------------------
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#
#  This source code is provided "AS IS", without warranty of any kind, express
#  or implied, including but not limited to the warranties of merchantability,
#  fitness for a particular purpose, and noninfringement.
#
#  Third-Party Components
#  ----------------------
#  This project uses third-party libraries (e.g., requests, psutil, click,
#  rich) which are licensed separately by their respective authors. Ensure
#  compliance with their license terms when distributing this software.
#===============================================================================

from pkgcockpit.cli import main


if __name__ == "__main__":
    main()
