"""Reading metadata out of built packages.

A ``.nupkg`` is a zip archive with one ``<id>.nuspec`` manifest at its root.
The manifest's ``<metadata><version>`` is the version consumers see, so that
is what gets compared against the resolved version.
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass
from pathlib import Path
from xml.etree import ElementTree

from relgate.core.result import Err, Ok, Result
from relgate.pipeline.errors import BuildError


@dataclass(frozen=True, slots=True)
class PackageManifest:
    id: str
    version: str


def _local(tag: str) -> str:
    # nuspec files carry a schema-versioned namespace
    return tag.rsplit("}", 1)[-1]


def read_manifest(path: Path) -> Result[PackageManifest, BuildError]:
    try:
        with zipfile.ZipFile(path) as archive:
            names = [n for n in archive.namelist() if "/" not in n and n.endswith(".nuspec")]
            if len(names) != 1:
                return Err(BuildError(f"{path.name}: expected one .nuspec, found {len(names)}"))
            raw = archive.read(names[0])
    except (zipfile.BadZipFile, OSError) as e:
        return Err(BuildError(f"{path.name}: unreadable package: {e}"))

    try:
        root = ElementTree.fromstring(raw)
    except ElementTree.ParseError as e:
        return Err(BuildError(f"{path.name}: invalid nuspec: {e}"))

    for element in root:
        if _local(element.tag) != "metadata":
            continue
        fields = {_local(child.tag): (child.text or "").strip() for child in element}
        package_id = fields.get("id")
        version = fields.get("version")
        if package_id and version:
            return Ok(PackageManifest(id=package_id, version=version))

    return Err(BuildError(f"{path.name}: nuspec has no id/version metadata"))


def package_id_from_filename(path: Path, version: str) -> str:
    """``Greetings.Demo.1.3.0.nupkg`` with version ``1.3.0`` -> ``Greetings.Demo``."""
    suffix = f".{version}{path.suffix}"
    name = path.name
    if name.lower().endswith(suffix.lower()):
        return name[: -len(suffix)]
    return path.stem
