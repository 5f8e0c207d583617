#===============================================================================
#  Package Cockpit | shared_folders.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Symlink strategy for shared model/output folders. Each package-relative
#  folder becomes a directory link into the central library; whatever the
#  package already had there is moved into the library first.
#
#  Removing a link never touches the library side.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import logging
import os
import shutil
from enum import Enum
from pathlib import Path
from typing import List, Mapping, Sequence

from .exceptions import InstallationError

logger = logging.getLogger(__name__)


def _same_dir(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return False


def _move_contents(src: Path, dest: Path) -> List[Path]:
    """Move children of src into dest; returns the children left behind (name clash)."""
    leftovers: List[Path] = []
    for child in src.iterdir():
        target = dest / child.name
        if target.exists() or target.is_symlink():
            logger.warning(f"Not moving {child}: {target} already exists")
            leftovers.append(child)
            continue
        shutil.move(str(child), str(target))
    return leftovers


def _free_backup_path(link: Path) -> Path:
    """<name>.bak, or <name>.bak1, <name>.bak2, ... if earlier backups exist."""
    backup = link.with_name(link.name + ".bak")
    n = 1
    while backup.exists() or backup.is_symlink():
        backup = link.with_name(f"{link.name}.bak{n}")
        n += 1
    return backup


class SharedFolderLinker:
    """Creates/removes links from package folders to a central library root."""

    def __init__(self, library_root: Path):
        self.library_root = Path(library_root)

    def link_path(self, install_dir: Path, relative_path: str) -> Path:
        return Path(install_dir) / relative_path

    def target_path(self, folder_type: Enum) -> Path:
        return self.library_root / str(folder_type.value)

    def setup_links(self, folders: Mapping[Enum, Sequence[str]], install_dir: Path) -> List[Path]:
        """Create every link declared in folders; returns the link paths."""
        created: List[Path] = []
        for folder_type, relative_paths in folders.items():
            target = self.target_path(folder_type)
            target.mkdir(parents=True, exist_ok=True)
            for rel in relative_paths:
                link = self.link_path(install_dir, rel)
                self._create_link(target, link)
                created.append(link)
        return created

    def _create_link(self, target: Path, link: Path) -> None:
        if link.is_symlink():
            if _same_dir(link, target):
                return
            link.unlink()
        elif link.is_dir():
            leftovers = _move_contents(link, target)
            if leftovers:
                backup = _free_backup_path(link)
                logger.warning(f"Keeping {len(leftovers)} conflicting item(s) in {backup}")
                try:
                    link.rename(backup)
                except OSError as e:
                    raise InstallationError(f"Failed to move {link} aside to {backup}: {e}") from e
            else:
                link.rmdir()
        elif link.exists():
            raise InstallationError(f"Cannot link {link}: a file is in the way")

        link.parent.mkdir(parents=True, exist_ok=True)
        try:
            os.symlink(target, link, target_is_directory=True)
        except OSError as e:
            raise InstallationError(f"Failed to link {link} -> {target}: {e}") from e
        logger.info(f"Linked {link} -> {target}")

    def remove_links(self, folders: Mapping[Enum, Sequence[str]], install_dir: Path) -> List[Path]:
        """Remove links (only links) and leave an empty folder behind for the package."""
        removed: List[Path] = []
        for relative_paths in folders.values():
            for rel in relative_paths:
                link = self.link_path(install_dir, rel)
                if not link.is_symlink():
                    continue
                link.unlink()
                link.mkdir(parents=True, exist_ok=True)
                removed.append(link)
                logger.info(f"Removed link {link}")
        return removed
