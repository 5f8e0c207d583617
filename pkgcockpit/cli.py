#===============================================================================
#  Package Cockpit | cli.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Command-line front end over InstallationOrchestrator:
#    packages | versions | list | install | update | check | launch |
#    uninstall | set-arg
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .constants import APP_TITLE, library_dir as default_library_dir
from .exceptions import CockpitError
from .github_api import GithubApi
from .logging_config import configure_logging
from .models import (
    LaunchOption,
    NoticeSeverity,
    PackageVersionOptions,
    SharedFolderMethod,
    TorchVariant,
)
from .orchestrator import InstallationOrchestrator
from .packages import PackageFactory
from .prerequisites import PrerequisiteRunner
from .progress import EventHub
from .settings import SettingsStore

logger = logging.getLogger(__name__)

console = Console()

_NOTICE_STYLES = {
    NoticeSeverity.INFO: "cyan",
    NoticeSeverity.SUCCESS: "green",
    NoticeSeverity.WARNING: "yellow",
    NoticeSeverity.ERROR: "red",
}


def build_orchestrator(root: Path, hub: EventHub) -> InstallationOrchestrator:
    settings = SettingsStore(root)
    runtime = settings.snapshot().python_runtime_path or None
    factory = PackageFactory(PrerequisiteRunner(root, runtime), settings, GithubApi())
    return InstallationOrchestrator(settings, factory, hub)


@asynccontextmanager
async def _session(root: Path) -> AsyncIterator[InstallationOrchestrator]:
    """Orchestrator plus background printers for progress and notices."""
    hub = EventHub()
    progress = hub.progress.subscribe()
    notices = hub.notices.subscribe()

    async def print_progress() -> None:
        async for item in progress:
            if item.report.message:
                style = "red" if item.failed else "dim"
                console.print(f"[{style}]{item.name}: {item.report.message}[/{style}]")

    async def print_notices() -> None:
        async for notice in notices:
            style = _NOTICE_STYLES.get(notice.severity, "white")
            console.print(f"[{style}]{notice.title}[/{style}] {notice.message}")

    printers = [asyncio.create_task(print_progress()), asyncio.create_task(print_notices())]
    orchestrator = build_orchestrator(root, hub)
    try:
        yield orchestrator
    finally:
        await orchestrator.stop_all()
        hub.close()
        await asyncio.gather(*printers)


def _run(ctx: click.Context, fn) -> None:
    async def main() -> None:
        async with _session(ctx.obj["library_dir"]) as orchestrator:
            await fn(orchestrator)

    try:
        asyncio.run(main())
    except CockpitError as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort()


def _echo_output(line: str) -> None:
    console.print(line, markup=False, highlight=False)


@click.group()
@click.version_option(__version__, prog_name=APP_TITLE)
@click.option("--library-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Library root (default: $PKGCOCKPIT_HOME or ~/.pkgcockpit)")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging on the console")
@click.pass_context
def cli(ctx: click.Context, library_dir: Optional[Path], verbose: bool):
    """Install, update and launch generative-art packages."""
    ctx.ensure_object(dict)
    ctx.obj["library_dir"] = library_dir or default_library_dir()
    configure_logging(verbose=verbose)


@cli.command("packages")
@click.pass_context
def list_packages(ctx: click.Context):
    """Show the packages that can be installed."""
    async def body(orchestrator: InstallationOrchestrator) -> None:
        table = Table(title="Available packages")
        table.add_column("Name", style="cyan")
        table.add_column("Display name")
        table.add_column("Repository")
        table.add_column("Difficulty")
        table.add_column("Shared folders")
        for adapter in orchestrator.factory.all():
            table.add_row(
                adapter.name,
                adapter.display_name,
                adapter.github_url,
                adapter.difficulty.name.title(),
                ", ".join(m.value for m in adapter.available_shared_folder_methods),
            )
        console.print(table)

    _run(ctx, body)


@cli.command("versions")
@click.argument("package_name")
@click.option("--branch", default=None, help="List recent commits on this branch instead")
@click.pass_context
def versions(ctx: click.Context, package_name: str, branch: Optional[str]):
    """Show installable releases/branches (or commits on --branch) for PACKAGE_NAME."""
    async def body(orchestrator: InstallationOrchestrator) -> None:
        adapter = orchestrator.factory.get(package_name)
        api = adapter.github_api
        owner, repo = adapter.author, adapter.repository_name

        if branch:
            commits = await asyncio.to_thread(api.get_commits, owner, repo, branch)
            table = Table(title=f"{adapter.display_name} @ {branch}")
            table.add_column("Commit", style="cyan")
            table.add_column("Message")
            for c in commits:
                message = (c.get("commit") or {}).get("message", "").splitlines()
                table.add_row(c["sha"][:7], message[0] if message else "")
            console.print(table)
            return

        if not adapter.should_ignore_releases:
            releases = await asyncio.to_thread(api.get_releases, owner, repo)
            table = Table(title=f"{adapter.display_name} releases")
            table.add_column("Tag", style="cyan")
            table.add_column("Pre-release")
            for r in releases:
                if not r.get("draft"):
                    table.add_row(r["tag_name"], "yes" if r.get("prerelease") else "")
            console.print(table)

        branches = await asyncio.to_thread(api.get_branches, owner, repo)
        console.print(f"[bold]Branches:[/bold] {', '.join(branches)}")

    _run(ctx, body)


@cli.command("list")
@click.pass_context
def list_installed(ctx: click.Context):
    """Show installed packages."""
    async def body(orchestrator: InstallationOrchestrator) -> None:
        installed = orchestrator.list_installed()
        if not installed:
            console.print("[dim]No packages installed[/dim]")
            return
        table = Table(title="Installed packages")
        table.add_column("Id", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Version")
        table.add_column("Shared folders")
        table.add_column("Update")
        for p in installed:
            table.add_row(
                p.id[:8],
                p.display_name,
                p.package_name,
                p.version.display_version,
                p.shared_folder_method.value,
                "[yellow]available[/yellow]" if p.update_available else "",
            )
        console.print(table)

    _run(ctx, body)


def _resolve_id(orchestrator: InstallationOrchestrator, prefix: str) -> str:
    """Accept a full id, a unique id prefix or a display name."""
    matches = [p.id for p in orchestrator.list_installed() if p.id.startswith(prefix) or p.display_name == prefix]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        console.print(f"[red]No installed package matches {prefix!r}[/red]")
    else:
        console.print(f"[red]{prefix!r} is ambiguous ({len(matches)} matches)[/red]")
    raise click.Abort()


@cli.command("install")
@click.argument("package_name")
@click.option("--name", "display_name", default=None, help="Folder/display name (default: package display name)")
@click.option("--tag", default=None, help="Release tag to install")
@click.option("--branch", default=None, help="Branch to install")
@click.option("--commit", default=None, help="Commit to pin (with --branch)")
@click.option("--shared-folders", "shared_folders",
              type=click.Choice([m.value for m in SharedFolderMethod]), default=None)
@click.option("--torch", "torch_variant", type=click.Choice([t.value for t in TorchVariant]), default=None)
@click.option("--show-output", is_flag=True, help="Stream git/pip/dotnet output")
@click.pass_context
def install(ctx: click.Context, package_name: str, display_name: Optional[str], tag: Optional[str],
            branch: Optional[str], commit: Optional[str], shared_folders: Optional[str],
            torch_variant: Optional[str], show_output: bool):
    """Install PACKAGE_NAME (see `packages`)."""
    if tag and branch:
        raise click.UsageError("--tag and --branch are mutually exclusive")
    version = None
    if tag or branch:
        version = PackageVersionOptions(release_tag=tag, branch=branch, commit=commit)

    async def body(orchestrator: InstallationOrchestrator) -> None:
        installed = await orchestrator.install(
            package_name,
            display_name=display_name,
            version=version,
            shared_folder_method=SharedFolderMethod(shared_folders) if shared_folders else None,
            torch_variant=TorchVariant(torch_variant) if torch_variant else None,
            on_output=_echo_output if show_output else None,
        )
        console.print(f"[green]✓ Installed[/green] {installed.display_name} ({installed.id})")

    _run(ctx, body)


@cli.command("update")
@click.argument("package")
@click.option("--show-output", is_flag=True)
@click.pass_context
def update(ctx: click.Context, package: str, show_output: bool):
    """Update an installed package to its latest version."""
    async def body(orchestrator: InstallationOrchestrator) -> None:
        package_id = _resolve_id(orchestrator, package)
        installed = await orchestrator.update(package_id, on_output=_echo_output if show_output else None)
        console.print(f"[green]✓ {installed.display_name}[/green] is now {installed.version.display_version}")

    _run(ctx, body)


@cli.command("check")
@click.argument("package")
@click.option("--force", is_flag=True, help="Ignore the cached result")
@click.pass_context
def check(ctx: click.Context, package: str, force: bool):
    """Check an installed package for updates."""
    async def body(orchestrator: InstallationOrchestrator) -> None:
        package_id = _resolve_id(orchestrator, package)
        if await orchestrator.check_for_updates(package_id, force=force):
            console.print("[yellow]Update available[/yellow]")
        else:
            console.print("[green]Up to date[/green]")

    _run(ctx, body)


@cli.command("launch")
@click.argument("package")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for startup before giving up")
@click.pass_context
def launch(ctx: click.Context, package: str, timeout: Optional[float]):
    """Run an installed package until it exits or Ctrl+C."""
    async def body(orchestrator: InstallationOrchestrator) -> None:
        package_id = _resolve_id(orchestrator, package)
        running = await orchestrator.launch(
            package_id,
            on_output=_echo_output,
            on_startup_complete=lambda url: console.print(f"[green]Ready[/green] {url or '(no url reported)'}"),
        )
        if timeout is not None:
            try:
                await running.wait_for_startup(timeout)
            except asyncio.TimeoutError:
                console.print(f"[red]{running.installed.display_name} did not start within {timeout:.0f}s[/red]")
                return
        try:
            await running.run.process.wait_for_exit()
        except (KeyboardInterrupt, asyncio.CancelledError):
            console.print("[dim]Stopping...[/dim]")
        finally:
            await orchestrator.stop(package_id)

    _run(ctx, body)


@cli.command("uninstall")
@click.argument("package")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def uninstall(ctx: click.Context, package: str, yes: bool):
    """Delete an installed package and everything in its folder."""
    async def body(orchestrator: InstallationOrchestrator) -> None:
        package_id = _resolve_id(orchestrator, package)
        if not yes and not click.confirm(
            "This will delete all folders in the package directory, including any generated "
            "images in that directory as well as any files you may have added. Continue?"
        ):
            return
        failed = await orchestrator.uninstall(package_id)
        if failed:
            console.print(f"[red]{len(failed)} path(s) could not be deleted[/red]")

    _run(ctx, body)


@cli.command("set-arg")
@click.argument("package")
@click.argument("option_name")
@click.argument("value", required=False)
@click.pass_context
def set_arg(ctx: click.Context, package: str, option_name: str, value: Optional[str]):
    """Set (or with no VALUE, reset) one launch option."""
    async def body(orchestrator: InstallationOrchestrator) -> None:
        package_id = _resolve_id(orchestrator, package)
        installed = orchestrator.settings.find_package(package_id)
        adapter = orchestrator.factory.get(installed.package_name)
        definition = next((d for d in adapter.launch_options if d.name == option_name), None)
        if definition is None:
            names = ", ".join(d.name for d in adapter.launch_options)
            console.print(f"[red]Unknown option {option_name!r}. Options: {names}[/red]")
            raise click.Abort()

        args = [a for a in installed.launch_args if a.name != option_name]
        args.append(LaunchOption(name=option_name, type=definition.type, value=value))
        orchestrator.set_launch_args(package_id, args)
        console.print(f"[green]✓[/green] {option_name} = {value!r}")

    _run(ctx, body)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
