"""
Build target generation: one artifact per (build x target) pair.

Each build is bundled once; its CompileResult is then written out for every
target, raw or minified according to the target. Every run is a full
rebuild: artifacts are overwritten unconditionally.

Artifact layout:
    <outputPath>/<target>/<build>.lua     bundled source
    <outputPath>/<target>/<build>.json    autoconf sidecar (toolchain only)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

from luabuild.lua.lexer import Token
from luabuild.lua.minifier import minify
from luabuild.model import BuildSpec, BuildTarget, CompileResult, Project
from luabuild.toolchain import AutoconfInvoker, AutoconfOutcome

logger = logging.getLogger(__name__)

Transform = Callable[[Sequence[Token]], str]


class Bundler(Protocol):
    """Anything with `compile(build_name) -> CompileResult` (see ModuleBundler)."""

    def compile(self, build_name: str) -> CompileResult:
        ...


@dataclass
class Artifact:
    """One generated output file."""
    build: str
    target: str
    path: Path
    metadata_path: Path
    minified: bool
    autoconf: Optional[AutoconfOutcome] = None


def render_output(result: CompileResult, target: BuildTarget, transform: Transform = minify) -> str:
    """Raw bundle for non-minified targets, transformed tokens otherwise."""
    if target.minify:
        return transform(result.tokens)
    return result.output


class BuildTargetGenerator:
    """
    Fans every build out across every target.

    Args:
        project: Project whose builds and targets are generated
        bundler: Produces one CompileResult per build
        transform: Minification capability, applied per minifying target
        autoconf: Sidecar generator; None skips sidecars (toolchain missing)
        source_ext: Extension of written artifacts
        metadata_ext: Extension of autoconf sidecars
        skip_reason: Logged for every artifact when `autoconf` is None
    """

    def __init__(
        self,
        project: Project,
        bundler: Bundler,
        transform: Transform = minify,
        autoconf: Optional[AutoconfInvoker] = None,
        source_ext: str = ".lua",
        metadata_ext: str = ".json",
        skip_reason: str = "no Lua tools were found",
    ):
        self.project = project
        self.bundler = bundler
        self.transform = transform
        self.autoconf = autoconf
        self.source_ext = source_ext
        self.metadata_ext = metadata_ext
        self.skip_reason = skip_reason

    def generate(self) -> List[Artifact]:
        artifacts: List[Artifact] = []
        for build in self.project.builds:
            logger.info('Compiling build "%s"...', build.name)
            result = self.bundler.compile(build.name)
            slots = build.render_slots()
            for target in self.project.targets:
                artifacts.append(self.write_artifact(build, target, result, slots))
        return artifacts

    def write_artifact(
        self,
        build: BuildSpec,
        target: BuildTarget,
        result: CompileResult,
        slots: Optional[List[str]] = None,
    ) -> Artifact:
        """Write one (build, target) artifact and, if possible, its sidecar."""
        logger.info('Generating build files for target "%s"...', target.name)
        if slots is None:
            slots = build.render_slots()

        path = self.project.artifact_path(build.name, target.name, self.source_ext)
        metadata_path = self.project.artifact_path(build.name, target.name, self.metadata_ext)

        output = render_output(result, target, self.transform)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Sources are read as latin-1, so writing latin-1 restores their bytes
        with open(path, "w", encoding="latin-1", newline="") as f:
            f.write(output)

        artifact = Artifact(
            build=build.name,
            target=target.name,
            path=path,
            metadata_path=metadata_path,
            minified=target.minify,
        )

        if self.autoconf is not None:
            artifact.autoconf = self.autoconf.generate(path, metadata_path, target, slots)
        else:
            logger.info("Skipping autoconf file generation as %s", self.skip_reason)
        return artifact
