"""
Core Project Model Objects

Defines the in-memory form of a project manifest and of resolved libraries.

These are pure data classes representing:
    - Projects (root container, one per manifest)
    - Library references (what a manifest declares)
    - Libraries (what the resolver produces)
    - Build specs and build targets (the two axes of the artifact grid)
    - Compile results (one per build, shared by every target)

ARCHITECTURAL RULE:
    These objects:
        - Do no I/O
        - Are normalized at the manifest boundary (builds/targets are lists)
        - Are read-only once the pipeline starts
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .lua.lexer import Token


DEFAULT_SOURCE_PATH = "src"
DEFAULT_OUTPUT_PATH = "out"


@dataclass
class RemoteSource:
    """
    Where a library can be fetched from when it is not on disk yet.

    Properties:
        git: Clone URL of the library repository
    """

    git: str


@dataclass
class LibraryReference:
    """
    A library dependency as declared in a manifest.

    Identity is the id: two references with the same id always resolve to
    the same Library instance within one run.

    Properties:
        id: Unique library key (e.g. "wolfe-labs/CoreLib")
        path: Local directory of the library, relative to the declaring project
        remote: Optional fetch descriptor used when `path` does not exist yet
    """

    id: str
    path: str = ""
    remote: Optional[RemoteSource] = None


@dataclass
class Library:
    """
    Resolved form of a LibraryReference.

    Created once per id for a single pipeline run and never mutated after
    resolution completes.

    Properties:
        id: Library key
        path: Absolute library directory
        manifest: Parsed library manifest
        source_root: Absolute directory modules are looked up in
        dependencies: The library's own declared references
    """

    id: str
    path: Path
    manifest: "Project"
    source_root: Path
    dependencies: List[LibraryReference] = field(default_factory=list)


@dataclass
class Slot:
    """
    A named, optionally typed parameter a build exposes to autoconf.

    Rendering:
        Slot("health")                 -> "health"
        Slot("health", type="number")  -> "health:type=number"
    """

    name: str
    type: Optional[str] = None

    def render(self) -> str:
        if self.type:
            return f"{self.name}:type={self.type}"
        return self.name


@dataclass
class BuildSpec:
    """
    One compile unit: an entry script plus every module it reaches.

    Properties:
        name: Build name, also the entry script name (`<sourcePath>/<name>.lua`)
        slots: Autoconf slots in declaration order
    """

    name: str
    slots: List[Slot] = field(default_factory=list)

    def render_slots(self) -> List[str]:
        """Render every slot, preserving declaration order."""
        return [slot.render() for slot in self.slots]


@dataclass
class BuildTarget:
    """
    An output policy applied to every build.

    Properties:
        name: Target name, also the output subdirectory
        minify: Write the minified bundle instead of the raw one
        handle_errors: Ask autoconf to wrap the script with error handling
    """

    name: str
    minify: bool = False
    handle_errors: bool = False


@dataclass
class Project:
    """
    Root container for a project (or library) manifest.

    Properties:
        name: Project identifier, also its pseudo-library id
        description: Free text
        source_path: Source directory, relative to `directory`
        output_path: Output directory, relative to `directory`
        builds: Build specs in declaration order
        targets: Build targets in declaration order
        libs: Declared library dependencies in declaration order
        directory: Directory holding the manifest (None for in-memory projects)

    INVARIANTS:
        - builds and targets are ordered lists whatever shape the manifest used
        - every (build, target) pair maps to one unique artifact path
    """

    name: str
    description: str = ""
    source_path: str = DEFAULT_SOURCE_PATH
    output_path: str = DEFAULT_OUTPUT_PATH
    builds: List[BuildSpec] = field(default_factory=list)
    targets: List[BuildTarget] = field(default_factory=list)
    libs: List[LibraryReference] = field(default_factory=list)
    directory: Optional[Path] = None

    def get_build(self, name: str) -> Optional[BuildSpec]:
        """
        Retrieve a build spec by name.

        Returns:
            BuildSpec or None if not found
        """
        for build in self.builds:
            if build.name == name:
                return build
        return None

    def get_target(self, name: str) -> Optional[BuildTarget]:
        """
        Retrieve a build target by name.

        Returns:
            BuildTarget or None if not found
        """
        for target in self.targets:
            if target.name == name:
                return target
        return None

    def get_library(self, library_id: str) -> Optional[LibraryReference]:
        """
        Retrieve a declared library reference by id.

        Returns:
            LibraryReference or None if not declared
        """
        for lib in self.libs:
            if lib.id == library_id:
                return lib
        return None

    def _base(self) -> Path:
        return self.directory if self.directory is not None else Path.cwd()

    def source_directory(self) -> Path:
        return self._base() / (self.source_path or DEFAULT_SOURCE_PATH)

    def output_directory(self) -> Path:
        return self._base() / (self.output_path or DEFAULT_OUTPUT_PATH)

    def artifact_path(self, build: str, target: str, ext: str) -> Path:
        """`<outputPath>/<target>/<build><ext>`"""
        return self.output_directory() / target / f"{build}{ext}"


@dataclass
class CompileResult:
    """
    The bundle of one build, computed once and shared by every target.

    Properties:
        build: Build name
        output: Raw combined Lua source
        tokens: Tokenized form of `output`, consumed by the minifier
        modules: Embedded module names, in embedding order
    """

    build: str
    output: str
    tokens: List["Token"] = field(default_factory=list)
    modules: List[str] = field(default_factory=list)
