"""Tests for PythonInstall / VenvRunner environment handling."""

import os
from pathlib import Path

import pytest

from pkgcockpit import compat
from pkgcockpit.exceptions import ProcessError
from pkgcockpit.python_env import PythonInstall, TclTkLibraries, parse_tcltk_query


@pytest.fixture
def base(tmp_path):
    return PythonInstall(tmp_path / "Python310")


class TestCreateVenvRunner:
    def test_override_wins_over_extras_and_toolkit(self, base, tmp_path):
        runner = base.create_venv_runner(
            tmp_path / "venv",
            env_vars={"TCL_LIBRARY": "1"},
            override_env_vars={"TCL_LIBRARY": "3"},
            with_default_tcltk=True,
        )
        assert runner.environment_variables == {
            "TCL_LIBRARY": "3",
            "TK_LIBRARY": base.default_tcltk_path,
        }

    def test_toolkit_replaces_extras(self, base, tmp_path):
        runner = base.create_venv_runner(tmp_path / "venv", env_vars={"TCL_LIBRARY": "1"}, with_default_tcltk=True)
        assert runner.environment_variables["TCL_LIBRARY"] == base.default_tcltk_path

    def test_no_disk_access(self, base, tmp_path):
        venv = tmp_path / "venv"
        runner = base.create_venv_runner(venv)
        assert not venv.exists()
        assert not runner.exists()

    def test_build_env_prepends_venv_bin(self, base, tmp_path):
        runner = base.create_venv_runner(tmp_path / "venv", env_vars={"FOO": "bar"})
        env = runner.build_env()
        assert env["VIRTUAL_ENV"] == str(tmp_path / "venv")
        assert env["PATH"].split(os.pathsep)[0] == str(runner.bin_dir)
        assert env["FOO"] == "bar"


class TestQueriedTclTk:
    @pytest.mark.asyncio
    async def test_query_failure_is_not_fatal(self, base, tmp_path, monkeypatch):
        async def fail():
            raise ProcessError("Tcl/Tk query failed (rc=1)", exit_code=1)

        monkeypatch.setattr(base, "query_tcltk_library", fail)
        runner = await base.create_venv_runner_async(
            tmp_path / "venv", env_vars={"A": "1"}, with_queried_tcltk=True
        )
        assert runner.environment_variables == {"A": "1"}

    @pytest.mark.asyncio
    async def test_queried_paths_merge_before_overrides(self, base, tmp_path, monkeypatch):
        async def query():
            return TclTkLibraries("/q/tcl8.6", "/q/tk8.6")

        monkeypatch.setattr(base, "query_tcltk_library", query)
        runner = await base.create_venv_runner_async(
            tmp_path / "venv",
            override_env_vars={"TK_LIBRARY": "/override"},
            with_queried_tcltk=True,
        )
        assert runner.environment_variables == {"TCL_LIBRARY": "/q/tcl8.6", "TK_LIBRARY": "/override"}

    def test_parse_query_output(self):
        libs = parse_tcltk_query('noise\n{"TclLibrary": "/a", "TkLibrary": "/b"}\n')
        assert libs == TclTkLibraries("/a", "/b")

    def test_parse_rejects_junk(self):
        with pytest.raises(ValueError):
            parse_tcltk_query("not json")


class TestPlatformPaths:
    def test_interpreter_paths_follow_platform(self, base, tmp_path):
        runner = base.create_venv_runner(tmp_path / "venv")
        if compat.is_windows():
            assert base.python_exe_path == base.root_path / "python.exe"
            assert runner.python_path == tmp_path / "venv" / "Scripts" / "python.exe"
        else:
            assert base.python_exe_path == base.root_path / "bin" / "python3"
            assert runner.python_path == tmp_path / "venv" / "bin" / "python"
            assert Path(base.default_tcltk_path) == base.root_path / "lib" / "tcl8.6"
