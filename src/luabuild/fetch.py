"""Fetches remote libraries with git."""

import logging
from pathlib import Path
from typing import Optional, Union

from luabuild.errors import CommandLaunchError, LibraryFetchError
from luabuild.process import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)


class GitFetcher:
    """Clones a library repository into the path its reference declares."""

    def __init__(self, runner: Optional[CommandRunner] = None, git: str = "git"):
        self.runner = runner if runner is not None else SubprocessRunner()
        self.git = git

    def fetch(self, url: str, destination: Union[str, Path]) -> None:
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        argv = [self.git, "clone", "--depth", "1", url, str(destination)]
        try:
            result = self.runner.run(argv)
        except CommandLaunchError as e:
            raise LibraryFetchError(f"Could not fetch {url}: {e}", path=destination) from e
        if not result.ok:
            raise LibraryFetchError(
                f"git clone of {url} failed ({result.returncode}): {result.combined_output()}",
                path=destination,
            )
        logger.debug("Fetched %s into %s", url, destination)
