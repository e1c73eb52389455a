"""
Manifest loading and serialization for Project objects.

Reads `project.json` (or `project.yaml` / `project.yml`) into a Project via an
intermediate dict representation, and writes it back the same way.

`builds`, `targets`, `libs` and build `slots` may be written either as a
mapping keyed by name or as a sequence of entries carrying their own name.
Both shapes are normalized to ordered lists here so nothing downstream has to
care which one the manifest used.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

import yaml

from luabuild.errors import ManifestMissing, ManifestParseError
from luabuild.model import (
    DEFAULT_OUTPUT_PATH,
    DEFAULT_SOURCE_PATH,
    BuildSpec,
    BuildTarget,
    LibraryReference,
    Project,
    RemoteSource,
    Slot,
)


MANIFEST_NAMES = ("project.json", "project.yaml", "project.yml")
YAML_SUFFIXES = (".yaml", ".yml")

T = TypeVar("T")


def _entries(value: Any, field_name: str, key_field: Optional[str] = "name") -> List[Dict[str, Any]]:
    """
    Normalize a mapping-or-sequence manifest field to a list of dicts.

    Mapping entries without their own `key_field` take the mapping key. With
    `key_field=None` the key is ignored and the entry must carry its own.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        entries = []
        for key, entry in value.items():
            if entry is None:
                entry = {}
            if not isinstance(entry, dict):
                raise ManifestParseError(f'Entry "{key}" of "{field_name}" must be an object')
            entry = dict(entry)
            if key_field:
                entry.setdefault(key_field, key)
            entries.append(entry)
        return entries
    if isinstance(value, list):
        for entry in value:
            if not isinstance(entry, dict):
                raise ManifestParseError(f'Entries of "{field_name}" must be objects')
        return [dict(entry) for entry in value]
    raise ManifestParseError(f'"{field_name}" must be an object or a list')


def _optional_str(d: Dict[str, Any], key: str, default: str) -> str:
    value = d.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise ManifestParseError(f'"{key}" must be a string')
    return value


def _parse_list(value: Any, field_name: str, parse: Callable[[Dict[str, Any]], T],
                key_field: Optional[str] = "name") -> List[T]:
    return [parse(entry) for entry in _entries(value, field_name, key_field)]


def remote_from_dict(d: Any) -> RemoteSource | None:
    if d is None:
        return None
    if not isinstance(d, dict):
        raise ManifestParseError('"remote" must be an object with a "git" URL')
    if not d.get("git"):
        return None
    if not isinstance(d["git"], str):
        raise ManifestParseError('"remote.git" must be a string')
    return RemoteSource(git=d["git"])


def remote_to_dict(r: RemoteSource | None) -> Dict[str, Any] | None:
    if r is None:
        return None
    return {"git": r.git}


def slot_from_dict(d: Dict[str, Any]) -> Slot:
    return Slot(name=str(d["name"]), type=d.get("type"))


def slot_to_dict(s: Slot) -> Dict[str, Any]:
    d: Dict[str, Any] = {}
    if s.type:
        d["type"] = s.type
    return d


def build_from_dict(d: Dict[str, Any]) -> BuildSpec:
    if not d.get("name"):
        raise ManifestParseError("Build entry is missing a name")
    return BuildSpec(name=str(d["name"]), slots=_parse_list(d.get("slots"), "slots", slot_from_dict))


def build_to_dict(b: BuildSpec) -> Dict[str, Any]:
    return {"name": b.name, "slots": {s.name: slot_to_dict(s) for s in b.slots}}


def target_from_dict(d: Dict[str, Any]) -> BuildTarget:
    if not d.get("name"):
        raise ManifestParseError("Build target entry is missing a name")
    return BuildTarget(
        name=str(d["name"]),
        minify=bool(d.get("minify", False)),
        handle_errors=bool(d.get("handleErrors", False)),
    )


def target_to_dict(t: BuildTarget) -> Dict[str, Any]:
    return {"name": t.name, "minify": t.minify, "handleErrors": t.handle_errors}


def library_from_dict(d: Dict[str, Any]) -> LibraryReference:
    # An empty id is kept as-is; the resolver reports it as MissingLibraryId.
    return LibraryReference(
        id=str(d.get("id") or ""),
        path=_optional_str(d, "path", ""),
        remote=remote_from_dict(d.get("remote")),
    )


def library_to_dict(lib: LibraryReference) -> Dict[str, Any]:
    d: Dict[str, Any] = {"id": lib.id, "path": lib.path}
    if lib.remote is not None:
        d["remote"] = remote_to_dict(lib.remote)
    return d


def project_from_dict(d: Any, directory: Optional[Path] = None) -> Project:
    """
    Build a Project from a decoded manifest document.

    Args:
        d: Decoded manifest (must be a mapping)
        directory: Directory the manifest lives in

    Raises:
        ManifestParseError: If the document shape is invalid
    """
    if not isinstance(d, dict):
        raise ManifestParseError("Project manifest must be an object")
    name = d.get("name")
    if not name or not str(name).strip():
        raise ManifestParseError('Project manifest is missing the "name" field')

    return Project(
        name=str(name),
        description=_optional_str(d, "description", ""),
        source_path=_optional_str(d, "sourcePath", DEFAULT_SOURCE_PATH),
        output_path=_optional_str(d, "outputPath", DEFAULT_OUTPUT_PATH),
        builds=_parse_list(d.get("builds"), "builds", build_from_dict),
        targets=_parse_list(d.get("targets"), "targets", target_from_dict),
        libs=_parse_list(d.get("libs"), "libs", library_from_dict, key_field=None),
        directory=directory,
    )


def project_to_dict(p: Project) -> Dict[str, Any]:
    return {
        "name": p.name,
        "description": p.description,
        "sourcePath": p.source_path,
        "outputPath": p.output_path,
        "libs": {lib.id: library_to_dict(lib) for lib in p.libs},
        "builds": [build_to_dict(b) for b in p.builds],
        "targets": [target_to_dict(t) for t in p.targets],
    }


def project_to_json(p: Project) -> str:
    return json.dumps(project_to_dict(p), indent=2)


def project_from_json(s: str, directory: Optional[Path] = None) -> Project:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as e:
        raise ManifestParseError(f"Invalid JSON: {e}")
    return project_from_dict(d, directory)


def project_to_yaml(p: Project) -> str:
    return yaml.safe_dump(project_to_dict(p), sort_keys=False)


def project_from_yaml(s: str, directory: Optional[Path] = None) -> Project:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise ManifestParseError(f"Invalid YAML: {e}")
    return project_from_dict(d, directory)


def find_manifest(directory: Union[str, Path]) -> Optional[Path]:
    """Return the first manifest file found in `directory`, or None."""
    directory = Path(directory)
    for name in MANIFEST_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_project(path: Union[str, Path]) -> Project:
    """
    Load a project manifest from disk.

    The format is picked from the file suffix: YAML for `.yaml`/`.yml`,
    JSON otherwise. The project directory is the manifest's parent.

    Raises:
        ManifestMissing: If the file does not exist
        ManifestParseError: If it cannot be decoded or has an invalid shape
    """
    path = Path(path).resolve()
    if not path.is_file():
        raise ManifestMissing(f"Project file [{path}] was not found.", path=path)

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ManifestParseError(f"{path}: not valid UTF-8 ({e.reason} at byte {e.start})", path=path) from e

    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            return project_from_yaml(text, path.parent)
        return project_from_json(text, path.parent)
    except ManifestParseError as e:
        raise ManifestParseError(f"{path}: {e}", path=path) from e


def save_project(p: Project, path: Union[str, Path]) -> None:
    """Write a project manifest, as YAML or JSON depending on the suffix."""
    path = Path(path)
    if path.suffix.lower() in YAML_SUFFIXES:
        text = project_to_yaml(p)
    else:
        text = project_to_json(p) + "\n"
    path.write_text(text, encoding="utf-8")
