"""
Pipeline configuration.

Values come from, in increasing priority: defaults, environment variables,
explicit overrides (the command line).

Environment:
    LUABUILD_LUA              Lua interpreter command (default "lua")
    LUABUILD_AUTOCONF_SCRIPT  Autoconf Lua script; without one no sidecars are made
    LUABUILD_TIMEOUT          Seconds before an external command is abandoned
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from luabuild.errors import ConfigError
from luabuild.manifest import MANIFEST_NAMES

DEFAULT_TIMEOUT = 300.0


def _parse_timeout(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid timeout: {value!r}")
    if timeout <= 0:
        raise ConfigError(f"Timeout must be positive, got {value!r}")
    return timeout


@dataclass
class PipelineConfig:
    """
    Settings of a single pipeline run.

    Properties:
        manifest_path: Project manifest to build
        lua_executable: Interpreter used for the probe and for autoconf
        autoconf_script: Autoconf script; None disables sidecars
        command_timeout: Timeout in seconds for external commands
        source_ext: Extension of Lua sources and artifacts
        metadata_ext: Extension of autoconf sidecars
        skip_autoconf: Never generate sidecars, even with a toolchain
    """

    manifest_path: Path = Path(MANIFEST_NAMES[0])
    lua_executable: str = "lua"
    autoconf_script: Optional[Path] = None
    command_timeout: Optional[float] = DEFAULT_TIMEOUT
    source_ext: str = ".lua"
    metadata_ext: str = ".json"
    skip_autoconf: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "PipelineConfig":
        """
        Build a config from the environment, then apply non-None overrides.

        Raises:
            ConfigError: On unknown override names or invalid values
        """
        environ = os.environ if environ is None else environ
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values: dict = {}
        if environ.get("LUABUILD_LUA"):
            values["lua_executable"] = environ["LUABUILD_LUA"]
        if environ.get("LUABUILD_AUTOCONF_SCRIPT"):
            values["autoconf_script"] = environ["LUABUILD_AUTOCONF_SCRIPT"]
        if "LUABUILD_TIMEOUT" in environ:
            values["command_timeout"] = environ["LUABUILD_TIMEOUT"]
        values.update({k: v for k, v in overrides.items() if v is not None})

        if "manifest_path" in values:
            values["manifest_path"] = Path(values["manifest_path"])
        if values.get("autoconf_script") is not None:
            values["autoconf_script"] = Path(values["autoconf_script"])
        if "command_timeout" in values:
            values["command_timeout"] = _parse_timeout(values["command_timeout"])
        return cls(**values)
