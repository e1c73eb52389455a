"""
Error taxonomy for the build pipeline.

Manifest and library errors are fatal: they abort the whole run.
Toolchain errors are signals only; they are logged and recorded on the
affected artifact but never raised out of the pipeline.
"""

from pathlib import Path
from typing import Optional, Sequence, Union


class LuaBuildError(Exception):
    """Base class for every error raised by luabuild."""

    def __init__(
        self,
        message: str,
        library_id: Optional[str] = None,
        path: Optional[Union[str, Path]] = None,
    ):
        super().__init__(message)
        self.library_id = library_id
        self.path = Path(path) if path is not None else None


class ConfigError(LuaBuildError):
    """Raised when configuration values are invalid."""
    pass


# =============================================================================
# MANIFEST ERRORS
# =============================================================================

class ManifestMissing(LuaBuildError):
    """Raised when the project manifest file does not exist."""
    pass


class ManifestParseError(LuaBuildError):
    """Raised when a manifest cannot be decoded or has an invalid shape."""
    pass


# =============================================================================
# LIBRARY RESOLUTION ERRORS
# =============================================================================

class MissingLibraryId(LuaBuildError):
    """Raised when a library entry has no "id" field."""
    pass


class LibraryPathNotFound(LuaBuildError):
    """Raised when a library's local path does not exist."""
    pass


class LibraryManifestMissing(LuaBuildError):
    """Raised when a library directory has no project manifest."""
    pass


class LibraryFetchError(LuaBuildError):
    """Raised when a remote library could not be fetched."""
    pass


class CyclicDependency(LuaBuildError):
    """Raised when a library depends on itself, directly or transitively."""

    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__(
            "Cyclic library dependency: " + " -> ".join(self.chain),
            library_id=self.chain[-1] if self.chain else None,
        )


# =============================================================================
# BUNDLING ERRORS
# =============================================================================

class BuildEntryNotFound(LuaBuildError):
    """Raised when the entry script of a build does not exist."""
    pass


class ModuleNotFound(LuaBuildError):
    """Raised when a library-qualified require cannot be resolved."""
    pass


class LuaSyntaxError(LuaBuildError):
    """Raised when the Lua tokenizer hits an unterminated construct."""

    def __init__(self, message: str, line: int, path=None):
        self.line = line
        self.reason = message
        super().__init__(f"{message} (line {line})", path=path)


# =============================================================================
# TOOLCHAIN SIGNALS (non-fatal)
# =============================================================================

class CommandLaunchError(LuaBuildError):
    """Raised by a command runner when a process cannot be started or times out."""
    pass


class ToolchainUnavailable(LuaBuildError):
    """The Lua toolchain could not be probed; the run continues without autoconf."""
    pass


class ToolchainInvocationFailed(LuaBuildError):
    """An autoconf invocation failed; only that artifact's sidecar is affected."""
    pass
