"""Tests for InstallationOrchestrator against the in-memory git/dotnet runner."""

import asyncio
import os
import sys

import pytest

from pkgcockpit.exceptions import (
    ConfigurationError,
    InstallationError,
    PackageBusyError,
    PackageNotFoundError,
    ProcessError,
    UnknownPackageError,
)
from pkgcockpit.models import (
    InstalledPackage,
    LaunchOption,
    LaunchOptionType,
    NoticeSeverity,
    PackageVersionOptions,
    SharedFolderMethod,
)
from pkgcockpit.orchestrator import delete_verbose

NONE = SharedFolderMethod.NONE


class TestInstall:
    @pytest.mark.asyncio
    async def test_fresh_install_has_no_update(self, orchestrator, runner):
        """Every adapter reports up to date straight after install."""
        for name in ("ComfyUI", "stable-diffusion-webui", "StableSwarmUI"):
            installed = await orchestrator.install(name, shared_folder_method=NONE)
            assert installed.last_update_check is None
            assert await orchestrator.check_for_updates(installed.id, force=True) is False

    @pytest.mark.asyncio
    async def test_registers_after_success(self, orchestrator, settings, runner, library):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)

        assert installed.library_path == "Packages/ComfyUI"
        assert installed.version.branch == "master"
        assert installed.version.commit_sha == runner.remote_heads["master"]
        assert settings.snapshot().active_installed_package_id == installed.id
        assert (library / "Packages" / "ComfyUI" / "main.py").exists()
        assert {a.name for a in installed.launch_args} >= {"Host", "Port"}
        assert ("requirements", "requirements.txt") in runner.venv_calls

    @pytest.mark.asyncio
    async def test_release_install(self, orchestrator):
        installed = await orchestrator.install("stable-diffusion-webui", shared_folder_method=NONE)
        assert installed.version.release_version == "v1.10.1"
        assert installed.version.is_release_mode

    @pytest.mark.asyncio
    async def test_pinned_commit(self, orchestrator, runner):
        pinned = "c" * 40
        version = PackageVersionOptions(branch="master", commit=pinned)
        installed = await orchestrator.install("ComfyUI", version=version, shared_folder_method=NONE)
        assert installed.version.commit_sha == pinned
        assert ["checkout", pinned] in runner.git_calls

    @pytest.mark.asyncio
    async def test_unsupported_method_falls_back_to_none(self, orchestrator):
        installed = await orchestrator.install(
            "ComfyUI", shared_folder_method=SharedFolderMethod.CONFIGURATION
        )
        assert installed.shared_folder_method is NONE

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    @pytest.mark.asyncio
    async def test_symlink_install_links_models(self, orchestrator, library):
        await orchestrator.install("ComfyUI", shared_folder_method=SharedFolderMethod.SYMLINK)
        checkpoints = library / "Packages" / "ComfyUI" / "models" / "checkpoints"
        assert checkpoints.is_symlink()
        assert checkpoints.resolve() == (library / "Models" / "StableDiffusion").resolve()

    @pytest.mark.asyncio
    async def test_failed_install_leaves_nothing(self, orchestrator, runner, library):
        notices = orchestrator.hub.notices.subscribe()
        runner.fail_clone = True

        with pytest.raises(ProcessError):
            await orchestrator.install("ComfyUI", shared_folder_method=NONE)

        assert orchestrator.list_installed() == []
        assert not (library / "Packages" / "ComfyUI").exists()
        (notice,) = notices.drain()
        assert notice.severity is NoticeSeverity.ERROR
        assert notice.persistent is True
        assert notice.title == "Error installing ComfyUI"
        assert "fatal: unable to access" in notice.message

    @pytest.mark.asyncio
    async def test_duplicate_install_rejected(self, orchestrator):
        await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        with pytest.raises(InstallationError):
            await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        assert len(orchestrator.list_installed()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_install_rejected(self, orchestrator, runner):
        entered = runner.hold("clone")
        first = asyncio.create_task(orchestrator.install("ComfyUI", shared_folder_method=NONE))
        await asyncio.wait_for(entered.wait(), 5)

        with pytest.raises(PackageBusyError):
            await orchestrator.install("ComfyUI", shared_folder_method=NONE)

        runner.release("clone")
        installed = await first
        assert [p.id for p in orchestrator.list_installed()] == [installed.id]

    @pytest.mark.asyncio
    async def test_unknown_package_name(self, orchestrator):
        with pytest.raises(UnknownPackageError):
            await orchestrator.install("InvokeAI")


class TestStoredRecords:
    def _store_unknown(self, settings):
        record = InstalledPackage(package_name="Fooocus", display_name="Fooocus", library_path="Packages/Fooocus")
        settings.transaction(lambda s: s.add_installed_package(record))
        return record

    @pytest.mark.asyncio
    async def test_unknown_type_fails_every_operation(self, orchestrator, settings):
        record = self._store_unknown(settings)
        with pytest.raises(UnknownPackageError):
            await orchestrator.check_for_updates(record.id)
        with pytest.raises(UnknownPackageError):
            await orchestrator.update(record.id)
        with pytest.raises(UnknownPackageError):
            await orchestrator.launch(record.id)
        with pytest.raises(UnknownPackageError):
            await orchestrator.uninstall(record.id)
        assert isinstance(UnknownPackageError("x"), ConfigurationError)

    @pytest.mark.asyncio
    async def test_missing_id(self, orchestrator):
        with pytest.raises(PackageNotFoundError):
            await orchestrator.check_for_updates("nope")


class TestUpdates:
    @pytest.mark.asyncio
    async def test_check_is_cached_for_interval(self, orchestrator, runner, clock):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        baseline = runner.count("ls-remote")

        assert await orchestrator.check_for_updates(installed.id) is False
        assert await orchestrator.check_for_updates(installed.id) is False
        assert runner.count("ls-remote") == baseline + 1

        clock.advance(minutes=16)
        await orchestrator.check_for_updates(installed.id)
        assert runner.count("ls-remote") == baseline + 2

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, orchestrator, runner):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        baseline = runner.count("ls-remote")
        await orchestrator.check_for_updates(installed.id)
        await orchestrator.check_for_updates(installed.id, force=True)
        assert runner.count("ls-remote") == baseline + 2

    @pytest.mark.asyncio
    async def test_new_commit_is_detected_and_applied(self, orchestrator, runner, settings, clock):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        runner.remote_heads["master"] = "b" * 40

        assert await orchestrator.check_for_updates(installed.id) is True
        assert settings.find_package(installed.id).update_available is True

        updated = await orchestrator.update(installed.id)
        assert updated.version.commit_sha == "b" * 40
        assert updated.update_available is False
        assert updated.last_update_check == clock.now
        assert ["pull", "--autostash", "origin", "master"] in runner.git_calls

    @pytest.mark.asyncio
    async def test_check_failure_reads_as_no_update(self, orchestrator, runner, settings):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        runner.remote_heads.clear()

        assert await orchestrator.check_for_updates(installed.id) is False
        assert settings.find_package(installed.id).last_update_check is None

    @pytest.mark.asyncio
    async def test_release_update(self, orchestrator, github, runner):
        installed = await orchestrator.install("stable-diffusion-webui", shared_folder_method=NONE)
        github.releases["stable-diffusion-webui"] = {"tag_name": "v1.11.0", "prerelease": False}

        assert await orchestrator.check_for_updates(installed.id, force=True) is True
        updated = await orchestrator.update(installed.id)
        assert updated.version.release_version == "v1.11.0"
        assert ["checkout", "--force", "v1.11.0"] in runner.git_calls

    @pytest.mark.asyncio
    async def test_concurrent_update_rejected(self, orchestrator, runner):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        runner.remote_heads["master"] = "b" * 40
        entered = runner.hold("fetch")
        first = asyncio.create_task(orchestrator.update(installed.id))
        await asyncio.wait_for(entered.wait(), 5)

        with pytest.raises(PackageBusyError):
            await orchestrator.update(installed.id)

        runner.release("fetch")
        updated = await first
        assert updated.version.commit_sha == "b" * 40
        assert runner.count("fetch") == 1

    @pytest.mark.asyncio
    async def test_racing_checks_share_one_lookup(self, orchestrator, runner):
        """A check that waited on another reuses its freshly cached answer."""
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        runner.remote_heads["master"] = "b" * 40
        baseline = runner.count("ls-remote")

        entered = runner.hold("ls-remote")
        checks = [asyncio.create_task(orchestrator.check_for_updates(installed.id)) for _ in range(2)]
        await asyncio.wait_for(entered.wait(), 5)
        await asyncio.sleep(0)
        runner.release("ls-remote")

        assert await asyncio.gather(*checks) == [True, True]
        assert runner.count("ls-remote") == baseline + 1


class TestUninstall:
    @pytest.mark.asyncio
    async def test_removes_dir_and_record(self, orchestrator, library, settings):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        assert await orchestrator.uninstall(installed.id) == []
        assert not (library / "Packages" / "ComfyUI").exists()
        assert orchestrator.list_installed() == []
        assert settings.snapshot().active_installed_package_id is None

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    @pytest.mark.asyncio
    async def test_shared_models_survive(self, orchestrator, library):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=SharedFolderMethod.SYMLINK)
        model = library / "Models" / "StableDiffusion" / "model.safetensors"
        model.write_text("weights")

        assert await orchestrator.uninstall(installed.id) == []
        assert model.read_text() == "weights"

    @pytest.mark.asyncio
    async def test_locked_files_are_reported(self, orchestrator, library, monkeypatch):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        install_dir = library / "Packages" / "ComfyUI"
        (install_dir / "locked.log").write_text("in use")
        notices = orchestrator.hub.notices.subscribe()

        def remove_file(path):
            if os.path.basename(path) == "locked.log":
                raise PermissionError(13, "in use", path)
            os.unlink(path)

        monkeypatch.setattr("pkgcockpit.orchestrator._remove_file", remove_file)

        failed = await orchestrator.uninstall(installed.id)
        assert failed == [str(install_dir / "locked.log")]
        assert not (install_dir / "main.py").exists()
        assert [p.id for p in orchestrator.list_installed()] == [installed.id]
        (notice,) = notices.drain()
        assert notice.persistent is True
        assert "locked.log" in notice.message


class TestDeleteVerbose:
    def test_missing_root(self, tmp_path):
        assert delete_verbose(tmp_path / "gone") == []

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_does_not_follow_links(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "keep.txt").write_text("x")
        root = tmp_path / "pkg"
        root.mkdir()
        os.symlink(outside, root / "link", target_is_directory=True)

        assert delete_verbose(root) == []
        assert not root.exists()
        assert (outside / "keep.txt").exists()


class TestLaunch:
    @pytest.mark.asyncio
    async def test_launch_reports_url_and_stops(self, orchestrator, runner, settings):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        orchestrator.set_launch_args(installed.id, [
            LaunchOption("Port", LaunchOptionType.STRING, "9000"),
            LaunchOption("Use CPU only", LaunchOptionType.BOOL, True),
        ])

        running = await orchestrator.launch(installed.id)
        try:
            assert await running.wait_for_startup(10) == "http://127.0.0.1:8188"
            assert orchestrator.is_running(installed.id)
            with pytest.raises(PackageBusyError):
                await orchestrator.launch(installed.id)
        finally:
            await orchestrator.stop(installed.id, timeout=5)

        assert not orchestrator.is_running(installed.id)
        (_, args) = next(call for call in runner.venv_calls if call[0] == "run")
        assert args[0].endswith("main.py")
        assert args[1:] == ["--listen", "127.0.0.1", "--port", "9000", "--cpu"]
        assert settings.snapshot().active_installed_package_id == installed.id

    @pytest.mark.asyncio
    async def test_simultaneous_launches_start_one_process(self, orchestrator, runner):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)

        results = await asyncio.gather(
            orchestrator.launch(installed.id), orchestrator.launch(installed.id), return_exceptions=True
        )
        launched = [r for r in results if not isinstance(r, BaseException)]
        rejected = [r for r in results if isinstance(r, PackageBusyError)]
        try:
            assert len(launched) == 1
            assert len(rejected) == 1
            assert sum(1 for call in runner.venv_calls if call[0] == "run") == 1
        finally:
            await orchestrator.stop(installed.id, timeout=5)

        assert not launched[0].is_running
        assert not orchestrator.is_running(installed.id)

    @pytest.mark.asyncio
    async def test_set_launch_args_rejects_unknown(self, orchestrator):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=NONE)
        with pytest.raises(ConfigurationError):
            orchestrator.set_launch_args(installed.id, [LaunchOption("Turbo", LaunchOptionType.BOOL, True)])
