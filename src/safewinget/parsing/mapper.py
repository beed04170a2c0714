"""
Maps parsed rows onto :class:`PackageRecord`.
"""

from __future__ import annotations

from typing import Iterable

from safewinget._types import OperationKind, PackageRecord, PackageSource, RawRow

# Verbs whose Version column is what is installed rather than what the catalogue offers.
_INSTALLED_VERSION_OPERATIONS = frozenset({OperationKind.LIST, OperationKind.UPGRADE})


def map_row(row: RawRow, operation: OperationKind, source_hint: str | None = None) -> PackageRecord:
    version = row.get("version") or None
    installed = version if operation in _INSTALLED_VERSION_OPERATIONS else None
    available = row.get("available") or (None if installed else version)

    return PackageRecord(
        name=row.name,
        id=row.id,
        source=PackageSource.from_text(row.get("source") or source_hint),
        installed_version=installed,
        available_version=available,
        match=row.get("match") or None,
        operation=operation,
    )


def map_rows(
    rows: Iterable[RawRow],
    operation: OperationKind,
    source_hint: str | None = None,
) -> list[PackageRecord]:
    """
    Convert rows to records, keeping their order.

    ``source`` comes from the row's Source column, else ``source_hint`` (the
    source the caller asked for), else ``unknown``. No filtering, no dedup.
    """
    return [map_row(row, operation, source_hint) for row in rows]
