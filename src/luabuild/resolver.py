"""
Library Resolver: turns declared library references into a resolved graph.

Resolution is a synchronous depth-first walk:
    - every id is resolved at most once per ResolutionContext (diamonds share
      one Library instance)
    - a library's own dependencies are resolved before it is registered
    - revisiting an id that is still being resolved is a cycle and fails fast

The resolved set lives on an explicit ResolutionContext so separate runs
(and separate tests) never share state.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from luabuild.errors import (
    CyclicDependency,
    LibraryManifestMissing,
    LibraryPathNotFound,
    MissingLibraryId,
)
from luabuild.manifest import find_manifest, load_project
from luabuild.model import DEFAULT_SOURCE_PATH, Library, LibraryReference, Project

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self, url: str, destination: Union[str, Path]) -> None:
        ...


class VisitState(Enum):
    """Resolution progress of a single library id."""
    UNVISITED = "unvisited"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class ResolutionContext:
    """
    The resolved library set of one pipeline run.

    Properties:
        libraries: id -> Library, in registration order (dependencies first)
        states: id -> VisitState
        stack: ids currently being resolved, outermost first
    """

    def __init__(self):
        self.libraries: Dict[str, Library] = {}
        self.states: Dict[str, VisitState] = {}
        self.stack: List[str] = []

    def state(self, library_id: str) -> VisitState:
        return self.states.get(library_id, VisitState.UNVISITED)

    def __contains__(self, library_id: str) -> bool:
        return library_id in self.libraries

    def __len__(self) -> int:
        return len(self.libraries)

    def get(self, library_id: str) -> Optional[Library]:
        return self.libraries.get(library_id)


class LibraryResolver:
    """
    Resolves LibraryReferences into Libraries, memoized on a context.

    Args:
        context: Where resolved libraries and visitation states are kept
        fetcher: Materializes remote libraries whose path does not exist yet.
            Without one, such libraries fail with LibraryPathNotFound.
        base_directory: Relative library paths are resolved against this
            directory (the project directory). Defaults to the working directory.
    """

    def __init__(
        self,
        context: Optional[ResolutionContext] = None,
        fetcher: Optional[Fetcher] = None,
        base_directory: Optional[Union[str, Path]] = None,
    ):
        self.context = context if context is not None else ResolutionContext()
        self.fetcher = fetcher
        self.base_directory = Path(base_directory) if base_directory is not None else Path.cwd()

    def _absolute(self, path: str) -> Path:
        p = Path(path)
        if not p.is_absolute():
            p = self.base_directory / p
        return p.resolve()

    def resolve(self, reference: LibraryReference) -> Library:
        """
        Resolve one reference (and, first, everything it depends on).

        Returns:
            The Library registered under `reference.id`

        Raises:
            MissingLibraryId: The reference has an empty id
            CyclicDependency: The id is already being resolved further up
            LibraryFetchError: A remote library could not be fetched
            LibraryPathNotFound: The library directory does not exist
            LibraryManifestMissing: The directory holds no project manifest
            ManifestParseError: The library manifest is invalid
        """
        if not reference.id:
            raise MissingLibraryId(
                f'Invalid library entry, missing "id" field: {reference}',
                path=reference.path or None,
            )

        cached = self.context.get(reference.id)
        if cached is not None:
            return cached
        if self.context.state(reference.id) is VisitState.IN_PROGRESS:
            raise CyclicDependency(self.context.stack + [reference.id])

        path = self._absolute(reference.path)

        if reference.remote is not None and reference.remote.git and not path.exists():
            if self.fetcher is None:
                raise LibraryPathNotFound(
                    f'Library "{reference.id}" must be fetched from {reference.remote.git} '
                    f"but no fetcher is configured: {path}",
                    library_id=reference.id,
                    path=path,
                )
            logger.info('Fetching remote library "%s"...', reference.id)
            self.fetcher.fetch(reference.remote.git, path)

        if not path.is_dir():
            raise LibraryPathNotFound(
                f'Library path not found for library "{reference.id}": {path}',
                library_id=reference.id,
                path=path,
            )

        manifest_file = find_manifest(path)
        if manifest_file is None:
            raise LibraryManifestMissing(
                f'Project file missing for library "{reference.id}": {path / "project.json"}',
                library_id=reference.id,
                path=path / "project.json",
            )

        logger.info('Loading project library: "%s"', reference.id)
        manifest = load_project(manifest_file)
        return self._register(reference.id, path, manifest)

    def resolve_project(self, project: Project) -> Library:
        """
        Register the project itself as a pseudo-library, then its libs.

        The already loaded manifest is used as-is, so projects whose manifest
        file has a non-default name still resolve.
        """
        directory = (project.directory or self.base_directory).resolve()
        cached = self.context.get(project.name)
        if cached is None:
            if self.context.state(project.name) is VisitState.IN_PROGRESS:
                raise CyclicDependency(self.context.stack + [project.name])
            logger.info('Loading project library: "%s"', project.name)
            cached = self._register(project.name, directory, project)
        for reference in project.libs:
            self.resolve(reference)
        return cached

    def resolve_all(self, references: List[LibraryReference]) -> Dict[str, Library]:
        for reference in references:
            self.resolve(reference)
        return self.context.libraries

    def _register(self, library_id: str, path: Path, manifest: Project) -> Library:
        self.context.states[library_id] = VisitState.IN_PROGRESS
        self.context.stack.append(library_id)
        try:
            for dependency in manifest.libs:
                self.resolve(dependency)
        finally:
            self.context.stack.pop()

        library = Library(
            id=library_id,
            path=path,
            manifest=manifest,
            source_root=(path / (manifest.source_path or DEFAULT_SOURCE_PATH)).resolve(),
            dependencies=list(manifest.libs),
        )
        self.context.libraries[library_id] = library
        self.context.states[library_id] = VisitState.DONE
        return library
