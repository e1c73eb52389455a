"""
Module bundler: combines a build's entry script with every module it requires.

Entry script:
    <project source root>/<build name>.lua

Require forms recognized:
    require "a.b"      require 'a.b'      require("a.b")

Module names:
    "lib:a.b"  -> <source root of library "lib">/a/b.lua (or a/b/init.lua)
    "a.b"      -> the requiring library's source root, then the project's

A library-qualified name that cannot be found is an error. An unqualified
name that cannot be found is assumed to be provided by the host at runtime
and is left alone.

Each module is embedded once, keyed by the name it was required with:

    package.preload["a.b"] = function (...)
    <module source>
    end

Modules appear in first-discovery order, followed by the entry script, so
the same inputs always produce byte-identical output.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from luabuild.errors import BuildEntryNotFound, LuaSyntaxError, ModuleNotFound
from luabuild.lua.lexer import BOMS, Token, tokenize
from luabuild.model import CompileResult, Library, Project

logger = logging.getLogger(__name__)


@dataclass
class _Module:
    name: str
    path: Path
    source: str
    library: Optional[Library]


def find_requires(tokens: List[Token]) -> List[str]:
    """
    Return the module names passed to `require` with a literal string.

    Calls like `obj.require(...)` or `obj:require(...)` are not requires.
    """
    significant = [t for t in tokens if not t.is_trivia]
    names: List[str] = []
    for i, token in enumerate(significant):
        if token.kind != "name" or token.text != "require":
            continue
        if i > 0 and significant[i - 1].text in (".", ":"):
            continue
        following = significant[i + 1:i + 4]
        if following and following[0].kind == "string":
            names.append(following[0].string_value())
        elif (
            len(following) == 3
            and following[0].text == "("
            and following[1].kind == "string"
            and following[2].text == ")"
        ):
            names.append(following[1].string_value())
    return names


def _tokenize_file(source: str, path: Path) -> List[Token]:
    try:
        return tokenize(source)
    except LuaSyntaxError as e:
        raise LuaSyntaxError(f"{path}: {e.reason}", e.line, path=path) from e


def _read_source(path: Path) -> str:
    # Lua source is bytes; latin-1 maps each byte to one character and back
    with open(path, encoding="latin-1", newline="") as f:
        return f.read()


def _strip_header(source: str) -> str:
    """Drop a leading byte order mark and shebang line."""
    for bom in BOMS:
        if source.startswith(bom):
            source = source[len(bom):]
            break
    if source.startswith("#!"):
        newline = source.find("\n")
        return "" if newline < 0 else source[newline + 1:]
    return source


def _lua_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class ModuleBundler:
    """
    Bundles builds of one project against a resolved library set.

    Args:
        project: The project being built
        libraries: Resolved library set (id -> Library); the project itself is
            expected under its own name
        source_ext: Extension of Lua source files
    """

    def __init__(self, project: Project, libraries: Mapping[str, Library], source_ext: str = ".lua"):
        self.project = project
        self.libraries = libraries
        self.source_ext = source_ext

    def _project_root(self) -> Path:
        own = self.libraries.get(self.project.name)
        if own is not None:
            return own.source_root
        return self.project.source_directory().resolve()

    def _find_file(self, root: Path, dotted: str) -> Optional[Path]:
        if not dotted:
            return None
        relative = Path(*dotted.split("."))
        for candidate in (
            root / relative.with_name(relative.name + self.source_ext),
            root / relative / f"init{self.source_ext}",
        ):
            if candidate.is_file():
                return candidate
        return None

    def _locate(self, name: str, requester: Optional[Library]) -> Optional[Tuple[Path, Optional[Library]]]:
        if ":" in name:
            library_id, dotted = name.rsplit(":", 1)
            library = self.libraries.get(library_id)
            if library is None:
                raise ModuleNotFound(
                    f'Module "{name}" refers to unknown library "{library_id}"',
                    library_id=library_id,
                )
            path = self._find_file(library.source_root, dotted)
            if path is None:
                raise ModuleNotFound(
                    f'Module "{dotted}" not found in library "{library_id}" ({library.source_root})',
                    library_id=library_id,
                    path=library.source_root,
                )
            return path, library

        if requester is not None:
            path = self._find_file(requester.source_root, name)
            if path is not None:
                return path, requester

        own = self.libraries.get(self.project.name)
        path = self._find_file(self._project_root(), name)
        if path is not None:
            return path, own
        return None

    def compile(self, build_name: str) -> CompileResult:
        """
        Bundle one build.

        Raises:
            BuildEntryNotFound: The entry script does not exist
            ModuleNotFound: A library-qualified require cannot be resolved
            LuaSyntaxError: A source file cannot be tokenized
        """
        entry_path = self._project_root() / f"{build_name}{self.source_ext}"
        if not entry_path.is_file():
            raise BuildEntryNotFound(
                f'Entry script for build "{build_name}" not found: {entry_path}',
                path=entry_path,
            )
        entry_source = _read_source(entry_path)

        modules: Dict[str, _Module] = {}
        owner = self.libraries.get(self.project.name)
        self._collect(entry_source, entry_path, owner, modules)

        parts: List[str] = []
        for module in modules.values():
            body = _strip_header(module.source).rstrip("\n")
            parts.append(f"package.preload[{_lua_string(module.name)}] = function (...)")
            parts.append(body)
            parts.append("end")
        parts.append(_strip_header(entry_source).rstrip("\n"))
        output = "\n".join(parts) + "\n"

        logger.debug('Build "%s" embeds %d module(s)', build_name, len(modules))
        return CompileResult(
            build=build_name,
            output=output,
            tokens=tokenize(output),
            modules=list(modules),
        )

    def _warn_if_shadowed(self, name: str, origin: Path, requester: Optional[Library],
                          embedded: _Module) -> None:
        """Bare names are embedded once; a second file with the same name loses."""
        located = self._locate(name, requester)
        if located is not None and located[0] != embedded.path:
            logger.warning(
                'Module "%s" required by %s resolves to %s, but %s is already embedded under that name',
                name, origin, located[0], embedded.path,
            )

    def _collect(self, source: str, origin: Path, requester: Optional[Library],
                 modules: Dict[str, _Module]) -> None:
        for name in find_requires(_tokenize_file(source, origin)):
            if name in modules:
                if ":" not in name:
                    self._warn_if_shadowed(name, origin, requester, modules[name])
                continue
            located = self._locate(name, requester)
            if located is None:
                logger.debug('Leaving require "%s" to the host', name)
                continue
            path, library = located
            module = _Module(name, path, _read_source(path), library)
            # Registered before recursing so mutual requires terminate
            modules[name] = module
            self._collect(module.source, path, library, modules)
