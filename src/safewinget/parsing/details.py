"""
Parser for ``winget show`` output.
"""

from __future__ import annotations

import re

from safewinget._types import PackageDetails, ParseStage
from safewinget.errors import ParseFailure
from safewinget.parsing.cleaning import clean_output

_FOUND = re.compile(r"^Found\s+(?P<name>.+?)\s+\[(?P<id>[^\]\s]+)\]\s*$")
_FIELD = re.compile(r"^(?P<key>[A-Za-z][\w .()/-]*?):(?:\s+(?P<value>.*))?$")


def parse_details(output: str) -> PackageDetails:
    """
    Read the ``Found <Name> [<Id>]`` banner and the ``Key: value`` fields below it.

    Indented lines continue the previous field, except under a key with an
    empty value (``Tags:``, ``Installer:``), where each indented line is an item.

    Raises:
        ParseFailure: ``EMPTY_OUTPUT`` for blank output, ``HEADER_NOT_FOUND``
            when there is no ``Found`` banner.
    """
    text = clean_output(output or "")
    if not text.strip():
        raise ParseFailure(ParseStage.EMPTY_OUTPUT)

    lines = text.split("\n")
    banner = None
    for index, line in enumerate(lines):
        banner = _FOUND.match(line.strip())
        if banner:
            break
    if banner is None:
        raise ParseFailure(ParseStage.HEADER_NOT_FOUND)

    fields: dict[str, str] = {}
    lists: dict[str, list[str]] = {}
    key: str | None = None

    for line in lines[index + 1 :]:
        if not line.strip():
            continue
        indented = line[:1].isspace()
        match = None if indented and key is not None else _FIELD.match(line.strip())
        if match:
            key = match.group("key").strip()
            value = (match.group("value") or "").strip()
            fields[key] = value
            if not value:
                lists[key] = []
        elif key is not None:
            item = line.strip()
            if key in lists:
                lists[key].append(item)
                fields[key] = "\n".join(lists[key])
            else:
                fields[key] = f"{fields[key]} {item}".strip()

    lookup = {k.lower(): v for k, v in fields.items()}
    tags = lists.get("Tags") or [t for t in re.split(r"[,\s]+", lookup.get("tags", "")) if t]

    return PackageDetails(
        id=banner.group("id"),
        name=banner.group("name"),
        version=lookup.get("version") or None,
        publisher=lookup.get("publisher") or None,
        description=lookup.get("description") or None,
        homepage=lookup.get("homepage") or lookup.get("publisher url") or None,
        license=lookup.get("license") or None,
        tags=tuple(tags),
        fields=fields,
    )
