"""Shared fixtures: in-memory git/dotnet runner, GitHub API and a temp library."""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from pkgcockpit.exceptions import ProcessError
from pkgcockpit.orchestrator import InstallationOrchestrator
from pkgcockpit.packages import PackageFactory
from pkgcockpit.process import ProcessHandle, ProcessResult
from pkgcockpit.progress import EventHub
from pkgcockpit.settings import SettingsStore

TIP_SHA = "a" * 40
NEW_SHA = "b" * 40

# stands in for a package server: prints its ready line, then idles
CHILD_SCRIPT = "import time; print('To see the GUI go to: http://127.0.0.1:8188', flush=True); time.sleep(60)"


class FakeVenvRunner:
    def __init__(self, venv_path, calls):
        self.venv_path = Path(venv_path)
        self.pip_cache_dir = None
        self.environment_variables = {}
        self.calls = calls

    def exists(self):
        return True

    async def setup(self, existing_ok=True, on_output=None):
        self.calls.append(("venv", str(self.venv_path)))

    async def pip_install(self, args, on_output=None):
        self.calls.append(("pip", list(args)))
        return ProcessResult(0)

    async def pip_install_requirements(self, requirements, on_output=None):
        self.calls.append(("requirements", Path(requirements).name))
        return ProcessResult(0)

    async def run_detached(self, args, on_output=None, name=""):
        self.calls.append(("run", list(args)))
        return await ProcessHandle(name).start(sys.executable, ["-c", CHILD_SCRIPT], on_output=on_output)


class FakePythonInstall:
    def __init__(self, calls):
        self.calls = calls

    async def create_venv_runner_async(self, venv_path, working_dir=None, env_vars=None,
                                       override_env_vars=None, with_default_tcltk=False,
                                       with_queried_tcltk=False):
        return FakeVenvRunner(venv_path, self.calls)


class FakePrerequisiteRunner:
    """Pretends to be git + dotnet, keeping remote state in memory."""

    def __init__(self, library_dir):
        self.library_dir = Path(library_dir)
        self.remote_heads = {"master": TIP_SHA, "main": TIP_SHA}
        self.origins = {}
        self.heads = {}
        self.git_calls = []
        self.dotnet_calls = []
        self.venv_calls = []
        self.fail_clone = False
        self.gates = {}

    def ensure_installed(self, prerequisites):
        pass

    def python_install(self):
        return FakePythonInstall(self.venv_calls)

    def count(self, verb):
        return sum(1 for args in self.git_calls if args[0] == verb)

    def hold(self, verb):
        """Park the next git calls of this verb until release(verb); returns the "entered" event."""
        entered, released = asyncio.Event(), asyncio.Event()
        self.gates[verb] = (entered, released)
        return entered

    def release(self, verb):
        self.gates.pop(verb)[1].set()

    async def _pass_gate(self, verb):
        gate = self.gates.get(verb)
        if gate is not None:
            gate[0].set()
            await gate[1].wait()

    async def get_git_output(self, args, cwd=None):
        self.git_calls.append(list(args))
        if args[:2] == ["remote", "get-url"]:
            origin = self.origins.get(str(cwd))
            if origin is None:
                return ProcessResult(2, stderr="No such remote 'origin'")
            return ProcessResult(0, stdout=origin + "\n")
        return ProcessResult(0)

    async def run_git(self, args, cwd=None, on_output=None):
        args = list(args)
        self.git_calls.append(args)
        verb = args[0]
        await self._pass_gate(verb)

        if verb == "clone":
            if self.fail_clone:
                raise ProcessError("git clone failed (rc=128)", exit_code=128, stderr="fatal: unable to access")
            ref, url, target = args[2], args[3], Path(args[4])
            target.mkdir(parents=True, exist_ok=True)
            for name in ("main.py", "launch.py", "requirements.txt"):
                (target / name).write_text("# stub\n")
            (target / "src").mkdir(exist_ok=True)
            (target / "src" / "SwarmUI.csproj").write_text("<Project />\n")
            self.origins[str(target)] = url
            self.heads[str(target)] = self.remote_heads.get(ref, TIP_SHA)
            return ProcessResult(0)

        if verb == "ls-remote":
            branch = args[2].rsplit("/", 1)[-1]
            sha = self.remote_heads.get(branch)
            return ProcessResult(0, stdout=f"{sha}\trefs/heads/{branch}\n" if sha else "")

        if verb == "rev-parse":
            return ProcessResult(0, stdout=self.heads.get(str(cwd), TIP_SHA) + "\n")

        if verb == "checkout":
            target = args[-1]
            if len(target) == 40:
                self.heads[str(cwd)] = target
            elif target in self.remote_heads:
                self.heads[str(cwd)] = self.remote_heads[target]
            return ProcessResult(0)

        if verb == "pull":
            self.heads[str(cwd)] = self.remote_heads[args[-1]]
            return ProcessResult(0)

        if args[:2] == ["remote", "set-url"]:
            self.origins[str(cwd)] = args[-1]
            return ProcessResult(0)

        return ProcessResult(0)

    async def run_dotnet(self, args, cwd=None, env=None, on_output=None):
        self.dotnet_calls.append(list(args))
        if args[0] == "build":
            release = Path(cwd) / "src" / "bin" / "live_release"
            release.mkdir(parents=True, exist_ok=True)
            (release / "SwarmUI.dll").write_text("")
        return ProcessResult(0)


class FakeGithubApi:
    def __init__(self):
        self.releases = {"stable-diffusion-webui": {"tag_name": "v1.10.1", "prerelease": False}}
        self.calls = 0

    def get_latest_release(self, owner, repo, include_prerelease=False):
        self.calls += 1
        return self.releases.get(repo)


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def library(tmp_path):
    return tmp_path / "library"


@pytest.fixture
def settings(library):
    return SettingsStore(library)


@pytest.fixture
def runner(library):
    return FakePrerequisiteRunner(library)


@pytest.fixture
def github():
    return FakeGithubApi()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def factory(runner, settings, github):
    return PackageFactory(runner, settings, github)


@pytest.fixture
def orchestrator(settings, factory, clock):
    return InstallationOrchestrator(settings, factory, EventHub(), clock=clock)
