# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Package descriptor generation and parsing."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Final
from xml.sax.saxutils import escape

from .constants import METADATA_NAMESPACE
from .errors import ManifestError
from .models import ArtifactRef, ArtifactSet

XML_DECLARATION: Final[str] = '<?xml version="1.0" encoding="UTF-8"?>'
_INDENT: Final[str] = "    "


@dataclass(frozen=True, slots=True)
class PackageDescriptor:
    """Serialised package descriptor together with its API version."""

    text: str
    api_version: str

    def encode(self) -> bytes:
        """Return the descriptor encoded as UTF-8."""

        return self.text.encode("utf-8")


def generate(artifacts: ArtifactSet, api_version: str) -> PackageDescriptor:
    """Render ``artifacts`` as a package descriptor.

    Types and members are emitted in lexicographic order so equal sets always
    produce byte-identical output. An empty set yields a valid descriptor
    holding only the version element.

    Args:
        artifacts: Artifact set to serialise.
        api_version: Version tag written to the trailing ``version`` element.

    Returns:
        PackageDescriptor: The rendered descriptor.
    """

    lines = [XML_DECLARATION, f'<Package xmlns="{METADATA_NAMESPACE}">']
    for type_name in artifacts.types():
        lines.append(f"{_INDENT}<types>")
        lines.extend(
            f"{_INDENT * 2}<members>{escape(member)}</members>" for member in artifacts.members(type_name)
        )
        lines.append(f"{_INDENT * 2}<name>{escape(type_name)}</name>")
        lines.append(f"{_INDENT}</types>")
    lines.append(f"{_INDENT}<version>{escape(api_version)}</version>")
    lines.append("</Package>")
    return PackageDescriptor(text="\n".join(lines) + "\n", api_version=api_version)


def parse_manifest(text: str) -> ArtifactSet:
    """Parse descriptor ``text`` back into an :class:`ArtifactSet`.

    Both namespaced and namespace-less documents are accepted.

    Raises:
        ManifestError: If the document is not well-formed or a ``types``
            element lacks its ``name``.
    """

    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ManifestError(f"Malformed package descriptor: {exc}") from exc
    if _local_name(root.tag) != "Package":
        raise ManifestError(f"Unexpected descriptor root element <{_local_name(root.tag)}>")

    artifacts = ArtifactSet()
    for types_element in _children(root, "types"):
        names = [(child.text or "").strip() for child in _children(types_element, "name")]
        if len(names) != 1 or not names[0]:
            raise ManifestError("Each <types> element requires exactly one non-empty <name>")
        for member in _children(types_element, "members"):
            value = (member.text or "").strip()
            if value:
                artifacts.add(ArtifactRef(names[0], value))
    return artifacts


def read_manifest(path: Path) -> tuple[ArtifactSet, str | None]:
    """Return the artifacts and version declared by the descriptor at ``path``.

    Raises:
        ManifestError: If the file cannot be read or parsed.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Unable to read package descriptor {path}: {exc}") from exc
    artifacts = parse_manifest(text)
    root = ET.fromstring(text)
    versions = [(child.text or "").strip() for child in _children(root, "version")]
    return artifacts, versions[0] if versions and versions[0] else None


def write_descriptor(descriptor: PackageDescriptor, path: Path) -> Path:
    """Write ``descriptor`` to ``path`` as UTF-8 and return the path."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(descriptor.encode())
    return path


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local_name(child.tag) == name]


__all__ = [
    "PackageDescriptor",
    "XML_DECLARATION",
    "generate",
    "parse_manifest",
    "read_manifest",
    "write_descriptor",
]
