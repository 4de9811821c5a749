"""Row-level diff of two independently fetched row sets.

Pure functions only: nothing here touches a connection, so the same inputs
always yield the same diffs.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from dbdesk_cli.shared.models import ColumnChange, DiffSummary, DiffType, Row, RowDiff


class _NullKey:
    """Key part standing in for a NULL key value."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "NULL_KEY"


NULL_KEY = _NullKey()

_STRUCTURED = (Mapping, list, tuple, set, frozenset)


def _key_part(value: Any) -> Any:
    if value is None:
        return NULL_KEY
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)


def row_key(row: Row, key_columns: Sequence[str]) -> tuple[Any, ...]:
    """Identity of ``row`` under ``key_columns``; missing columns count as NULL."""
    return tuple(_key_part(row.get(column)) for column in key_columns)


def _dump(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _normalise(value: Any) -> Any:
    # Mapping keys become text and sets become sorted lists at every depth.
    if isinstance(value, Mapping):
        return {str(key): _normalise(item) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((_normalise(item) for item in value), key=_dump)
    if isinstance(value, (list, tuple)):
        return [_normalise(item) for item in value]
    return value


def _canonical(value: Any) -> str:
    return _dump(_normalise(value))


def values_equal(a: Any, b: Any) -> bool:
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    if isinstance(a, _STRUCTURED) and isinstance(b, _STRUCTURED):
        return _canonical(a) == _canonical(b)
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _index_rows(rows: Iterable[Row], key_columns: Sequence[str]) -> dict[tuple[Any, ...], Row]:
    # Later duplicates replace earlier rows but keep the first-seen position.
    indexed: dict[tuple[Any, ...], Row] = {}
    for row in rows:
        indexed[row_key(row, key_columns)] = row
    return indexed


def _column_union(source: Row, target: Row) -> list[str]:
    columns = list(source.keys())
    seen = set(columns)
    for column in target.keys():
        if column not in seen:
            columns.append(column)
            seen.add(column)
    return columns


def column_changes(source: Row, target: Row) -> tuple[ColumnChange, ...]:
    return tuple(
        ColumnChange(column_name=column, source_value=source.get(column), target_value=target.get(column))
        for column in _column_union(source, target)
        if not values_equal(source.get(column), target.get(column))
    )


def _key_values(row: Row, key_columns: Sequence[str]) -> dict[str, Any]:
    return {column: row.get(column) for column in key_columns}


def diff_rows(
    source_rows: Iterable[Row],
    target_rows: Iterable[Row],
    key_columns: Sequence[str],
) -> list[RowDiff]:
    """Classify every key found on either side as added, removed, modified or unchanged.

    ``added`` means present only in the target and ``removed`` only in the
    source. Output lists source keys in first-seen order, then target-only keys.
    """
    source = _index_rows(source_rows, key_columns)
    target = _index_rows(target_rows, key_columns)

    diffs: list[RowDiff] = []
    for key, source_row in source.items():
        if key not in target:
            diffs.append(
                RowDiff(
                    diff_type=DiffType.REMOVED,
                    primary_key=_key_values(source_row, key_columns),
                    source_row=source_row,
                    target_row=None,
                )
            )
            continue
        target_row = target[key]
        changes = column_changes(source_row, target_row)
        diffs.append(
            RowDiff(
                diff_type=DiffType.MODIFIED if changes else DiffType.UNCHANGED,
                primary_key=_key_values(source_row, key_columns),
                source_row=source_row,
                target_row=target_row,
                column_changes=changes,
            )
        )

    for key, target_row in target.items():
        if key in source:
            continue
        diffs.append(
            RowDiff(
                diff_type=DiffType.ADDED,
                primary_key=_key_values(target_row, key_columns),
                source_row=None,
                target_row=target_row,
            )
        )
    return diffs


def summarize(diffs: Iterable[RowDiff], source_count: int, target_count: int) -> DiffSummary:
    counts = {diff_type: 0 for diff_type in DiffType}
    for diff in diffs:
        counts[diff.diff_type] += 1
    return DiffSummary(
        source_rows=source_count,
        target_rows=target_count,
        added=counts[DiffType.ADDED],
        removed=counts[DiffType.REMOVED],
        modified=counts[DiffType.MODIFIED],
        unchanged=counts[DiffType.UNCHANGED],
    )
