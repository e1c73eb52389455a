"""
Shared fixtures: on-disk project/library factories and a stub command runner.

No test spawns a real process; every external command goes through
StubRunner, which records the argv and answers from a handler.
"""

import json
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from luabuild.errors import CommandLaunchError
from luabuild.process import CommandResult


class StubRunner:
    """CommandRunner that never starts a process."""

    def __init__(self, handler: Optional[Callable[[List[str]], CommandResult]] = None):
        self.handler = handler
        self.calls: List[List[str]] = []

    def run(self, argv, cwd=None, timeout=None) -> CommandResult:
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        if self.handler is None:
            raise CommandLaunchError(f"Could not run {argv[0]}: not found")
        return self.handler(argv)


def lua_handler(version: str = "Lua 5.4.6  Copyright (C) 1994-2023 Lua.org, PUC-Rio",
                autoconf_output: str = "", autoconf_code: int = 0):
    """Handler answering like a working Lua install."""

    def handle(argv: List[str]) -> CommandResult:
        if argv[1:] == ["-v"]:
            return CommandResult(argv=argv, returncode=0, stdout=version + "\n")
        return CommandResult(argv=argv, returncode=autoconf_code, stdout=autoconf_output)

    return handle


def _write_manifest(directory: Path, data: Dict, manifest_name: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / manifest_name
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def _write_sources(root: Path, sources: Optional[Dict[str, str]]) -> None:
    for relative, text in (sources or {}).items():
        file = root / relative
        file.parent.mkdir(parents=True, exist_ok=True)
        file.write_text(text, encoding="utf-8")


@pytest.fixture
def stub_runner():
    return StubRunner()


@pytest.fixture
def lua_runner():
    return StubRunner(lua_handler())


@pytest.fixture
def make_project(tmp_path):
    """
    Write a project manifest plus sources; returns the manifest path.

    `builds`/`targets` are passed through as-is so tests can use either the
    mapping or the sequence shape.
    """

    def factory(
        name: str = "demo",
        builds=None,
        targets=None,
        libs=None,
        sources: Optional[Dict[str, str]] = None,
        source_path: str = "src",
        output_path: str = "out",
        manifest_name: str = "project.json",
        directory: Optional[Path] = None,
    ) -> Path:
        directory = directory if directory is not None else tmp_path / name
        data = {
            "name": name,
            "description": f"{name} test project",
            "sourcePath": source_path,
            "outputPath": output_path,
            "libs": libs if libs is not None else {},
            "builds": builds if builds is not None else {},
            "targets": targets if targets is not None else {},
        }
        manifest = _write_manifest(directory, data, manifest_name)
        _write_sources(directory / source_path, sources)
        return manifest

    return factory


@pytest.fixture
def make_library(tmp_path):
    """Write a library directory (manifest + sources); returns its directory."""

    def factory(
        library_id: str,
        libs=None,
        sources: Optional[Dict[str, str]] = None,
        source_path: str = "src",
        directory: Optional[Path] = None,
    ) -> Path:
        directory = directory if directory is not None else tmp_path / "libs" / library_id
        data = {"name": library_id, "sourcePath": source_path, "libs": libs or {}}
        _write_manifest(directory, data, "project.json")
        _write_sources(directory / source_path, sources)
        return directory

    return factory
