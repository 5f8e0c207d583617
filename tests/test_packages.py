"""Tests for the package adapters and registry."""

import pytest

from pkgcockpit import fds
from pkgcockpit.exceptions import InstallationError, UnknownPackageError
from pkgcockpit.models import PackageDifficulty, SharedFolderMethod, TorchVariant
from pkgcockpit.packages import ComfyUI, PackageRun, StableDiffusionWebUI, StableSwarm
from pkgcockpit.packages.git_package import TORCH_INDEX_URLS


class TestPackageRun:
    def test_extracts_url_from_startup_line(self):
        seen = []
        run = PackageRun("StableSwarmUI", "Starting webserver", on_startup_complete=seen.append)
        run.handle_console_line("Loading backends...")
        assert not run.startup_complete.is_set()

        run.handle_console_line("Starting webserver at http://127.0.0.1:7801")
        assert run.startup_complete.is_set()
        assert run.web_url == "http://127.0.0.1:7801"
        assert seen == ["http://127.0.0.1:7801"]

    def test_signals_once(self):
        seen = []
        run = PackageRun("ComfyUI", "To see the GUI go to", on_startup_complete=seen.append)
        run.handle_console_line("To see the GUI go to: http://127.0.0.1:8188")
        run.handle_console_line("To see the GUI go to: http://0.0.0.0:9999")
        assert seen == ["http://127.0.0.1:8188"]

    def test_no_marker_never_signals(self):
        lines = []
        run = PackageRun("custom", None, on_output=lines.append)
        run.handle_console_line("Running on http://127.0.0.1:1234")
        assert lines == ["Running on http://127.0.0.1:1234"]
        assert not run.startup_complete.is_set()

    def test_marker_without_url(self):
        run = PackageRun("stable-diffusion-webui", "Running on local URL")
        run.handle_console_line("running on local url: (pending)")
        assert run.startup_complete.is_set()
        assert run.web_url == ""


class TestPackageFactory:
    def test_resolves_builtin_adapters(self, factory):
        assert set(factory.names()) == {"ComfyUI", "stable-diffusion-webui", "StableSwarmUI"}
        assert isinstance(factory.get("ComfyUI"), ComfyUI)
        assert "StableSwarmUI" in factory

    def test_unknown_name(self, factory):
        with pytest.raises(UnknownPackageError) as info:
            factory.get("InvokeAI")
        assert info.value.package_name == "InvokeAI"


class TestAdapterMetadata:
    def test_swarm(self, factory):
        swarm = factory.get("StableSwarmUI")
        assert swarm.github_url == "https://github.com/mcmonkeyprojects/SwarmUI"
        assert swarm.should_ignore_releases
        assert swarm.difficulty is PackageDifficulty.ADVANCED
        assert swarm.recommended_shared_folder_method is SharedFolderMethod.CONFIGURATION
        assert swarm.aspnet_env["ASPNETCORE_URLS"] == "http://*:7801"

    def test_webui_honours_releases(self, factory):
        webui = factory.get("stable-diffusion-webui")
        assert isinstance(webui, StableDiffusionWebUI)
        assert not webui.should_ignore_releases
        assert not webui.supports_shared_folder_method(SharedFolderMethod.CONFIGURATION)

    def test_torch_args(self, factory):
        comfy = factory.get("ComfyUI")
        assert comfy.torch_install_args(TorchVariant.CUDA)[-2:] == ["--index-url", TORCH_INDEX_URLS[TorchVariant.CUDA]]
        assert comfy.torch_install_args(TorchVariant.DIRECTML)[-1] == "torch-directml"
        assert "--index-url" not in comfy.torch_install_args(TorchVariant.MPS)

    def test_default_torch_variant_is_supported(self, factory):
        for adapter in factory.all():
            assert adapter.default_torch_variant() in adapter.available_torch_variants


class TestLatestVersion:
    @pytest.mark.asyncio
    async def test_branch_tip_when_ignoring_releases(self, factory, github, runner):
        version = await factory.get("ComfyUI").get_latest_version()
        assert version.branch == "master"
        assert version.commit == runner.remote_heads["master"]
        assert github.calls == 0

    @pytest.mark.asyncio
    async def test_release_tag(self, factory):
        version = await factory.get("stable-diffusion-webui").get_latest_version()
        assert version.release_tag == "v1.10.1"
        assert version.is_release

    @pytest.mark.asyncio
    async def test_no_release_falls_back_to_branch(self, factory, github):
        github.releases.clear()
        version = await factory.get("stable-diffusion-webui").get_latest_version()
        assert version.release_tag is None
        assert version.branch == "master"


class TestStableSwarm:
    @pytest.mark.asyncio
    async def test_requires_comfyui(self, orchestrator, library):
        with pytest.raises(InstallationError):
            await orchestrator.install("StableSwarmUI", shared_folder_method=SharedFolderMethod.NONE)
        assert orchestrator.list_installed() == []
        assert not (library / "Packages" / "SwarmUI").exists()

    @pytest.mark.asyncio
    async def test_builds_and_writes_backend(self, orchestrator, runner, factory, library):
        await orchestrator.install("ComfyUI", shared_folder_method=SharedFolderMethod.NONE)
        await orchestrator.install("StableSwarmUI", shared_folder_method=SharedFolderMethod.NONE)

        build = next(args for args in runner.dotnet_calls if args[0] == "build")
        assert build[1:] == ["src/SwarmUI.csproj", "--configuration", "Release", "-o", "src/bin/live_release"]

        swarm_dir = library / "Packages" / "SwarmUI"
        backends = fds.read_file(StableSwarm.backends_path(swarm_dir))
        assert backends.get("0.type") == "comfyui_selfstart"
        assert backends.get("0.settings.StartScript") == "../ComfyUI/main.py"
        assert backends.get_bool("0.enabled") is True

    @pytest.mark.asyncio
    async def test_configuration_round_trip_restores_defaults(self, orchestrator, factory, library):
        await orchestrator.install("ComfyUI", shared_folder_method=SharedFolderMethod.NONE)
        await orchestrator.install("StableSwarmUI", display_name="SwarmPlain",
                                   shared_folder_method=SharedFolderMethod.NONE)
        await orchestrator.install("StableSwarmUI", display_name="SwarmShared",
                                   shared_folder_method=SharedFolderMethod.CONFIGURATION)

        plain = StableSwarm.settings_path(library / "Packages" / "SwarmPlain")
        shared_dir = library / "Packages" / "SwarmShared"
        shared = StableSwarm.settings_path(shared_dir)

        configured = fds.read_file(shared)
        assert configured.get("Paths.ModelRoot") == str(library / "Models")
        assert configured.get("Paths.SDLoraFolder") == str(library / "Models" / "Lora")

        swarm = factory.get("StableSwarmUI")
        await swarm.remove_model_folder_links(shared_dir, SharedFolderMethod.CONFIGURATION)
        assert shared.read_bytes() == plain.read_bytes()

    @pytest.mark.asyncio
    async def test_legacy_remote_is_migrated(self, orchestrator, runner, factory, library):
        await orchestrator.install("ComfyUI", shared_folder_method=SharedFolderMethod.NONE)
        installed = await orchestrator.install("StableSwarmUI", shared_folder_method=SharedFolderMethod.NONE)
        swarm_dir = str(library / "Packages" / "SwarmUI")
        runner.origins[swarm_dir] = "https://github.com/Stability-AI/StableSwarmUI"

        assert await orchestrator.check_for_updates(installed.id, force=True) is False
        assert runner.origins[swarm_dir] == factory.get("StableSwarmUI").github_url

    @pytest.mark.asyncio
    async def test_missing_origin_is_restored(self, orchestrator, runner, factory, library):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=SharedFolderMethod.NONE)
        comfy_dir = str(library / "Packages" / "ComfyUI")
        del runner.origins[comfy_dir]

        await orchestrator.check_for_updates(installed.id, force=True)
        assert runner.origins[comfy_dir] == factory.get("ComfyUI").github_url

    @pytest.mark.asyncio
    async def test_canonical_remote_is_left_alone(self, orchestrator, runner):
        installed = await orchestrator.install("ComfyUI", shared_folder_method=SharedFolderMethod.NONE)
        await orchestrator.check_for_updates(installed.id, force=True)
        assert not any(args[:2] == ["remote", "set-url"] for args in runner.git_calls)
