"""
Build pipeline: manifest -> library graph -> bundles -> artifacts.

A run is all-or-nothing for manifest and library problems: those raise
before any artifact is written. Toolchain problems only cost the autoconf
sidecars.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from luabuild.config import PipelineConfig
from luabuild.fetch import GitFetcher
from luabuild.generator import Artifact, BuildTargetGenerator
from luabuild.lua import ModuleBundler, minify
from luabuild.manifest import load_project
from luabuild.process import CommandRunner, SubprocessRunner
from luabuild.resolver import Fetcher, LibraryResolver, ResolutionContext
from luabuild.toolchain import AutoconfInvoker, Toolchain

logger = logging.getLogger(__name__)


@dataclass
class BuildReport:
    """Summary of one pipeline run."""
    project: str
    libraries: List[str] = field(default_factory=list)
    artifacts: List[Artifact] = field(default_factory=list)
    toolchain_version: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def run_pipeline(
    config: PipelineConfig,
    runner: Optional[CommandRunner] = None,
    fetcher: Optional[Fetcher] = None,
) -> BuildReport:
    """
    Build every (build x target) artifact of the configured project.

    Args:
        config: Run settings
        runner: Executes external commands (defaults to a SubprocessRunner
            honouring `config.command_timeout`)
        fetcher: Fetches remote libraries (defaults to git over `runner`)

    Returns:
        BuildReport for the run

    Raises:
        LuaBuildError: On any fatal manifest, library or bundling error
    """
    runner = runner if runner is not None else SubprocessRunner(timeout=config.command_timeout)
    fetcher = fetcher if fetcher is not None else GitFetcher(runner)

    toolchain = Toolchain(runner, executable=config.lua_executable, timeout=config.command_timeout)
    toolchain.probe()

    logger.info("Loading project file: %s", config.manifest_path)
    project = load_project(config.manifest_path)
    report = BuildReport(project=project.name, toolchain_version=toolchain.version)

    # Fresh context per run: nothing resolved here leaks into the next run
    context = ResolutionContext()
    resolver = LibraryResolver(context, fetcher=fetcher, base_directory=project.directory)
    resolver.resolve_project(project)
    report.libraries = list(context.libraries)

    autoconf = None
    if config.skip_autoconf:
        skip_reason = "it was disabled"
    elif not toolchain.available():
        skip_reason = "no Lua tools were found"
        report.add_warning(str(toolchain.error))
    elif config.autoconf_script is None:
        skip_reason = "no autoconf script is configured"
        report.add_warning("Lua toolchain found but no autoconf script is configured")
    else:
        skip_reason = ""
        autoconf = AutoconfInvoker(toolchain, config.autoconf_script)

    generator = BuildTargetGenerator(
        project,
        ModuleBundler(project, context.libraries, source_ext=config.source_ext),
        transform=minify,
        autoconf=autoconf,
        source_ext=config.source_ext,
        metadata_ext=config.metadata_ext,
        skip_reason=skip_reason,
    )
    report.artifacts = generator.generate()

    for artifact in report.artifacts:
        if artifact.autoconf is not None and not artifact.autoconf.ok:
            report.add_warning(str(artifact.autoconf.error))

    logger.info(
        "Built %d artifact(s) for %d build(s) x %d target(s)",
        len(report.artifacts), len(project.builds), len(project.targets),
    )
    return report
