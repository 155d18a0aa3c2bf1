"""Field-level diffs between two YAML snapshots of a control or mappings file.

Instead of ``-status: planned`` / ``+status: implemented`` this reports
``modified status: planned -> implemented``. Mappings are nested and compared
recursively; lists of mapping records (items with ``control_id`` and
``uuid``) are matched by uuid; other lists of equal length are compared
element by element, lists whose length changed are reported as a whole.

Strings are compared ignoring trailing whitespace at the end of each line,
so re-wrapping noise in free text does not show up as a change.
"""

from __future__ import annotations

from typing import Any

import yaml

from controlhist.models import SemanticChange, SemanticDiffResult
from controlhist.utils.logger import get_logger

logger = get_logger("diff.semantic")

PARSE_ERROR_SUMMARY = "Error parsing YAML content"
NO_CHANGES_SUMMARY = "No changes detected"


def semantic_diff(
    old_text: str | None, new_text: str | None, is_array_file: bool = False
) -> SemanticDiffResult:
    """Compare two YAML documents field by field.

    Empty text counts as an empty mapping, or an empty list when
    ``is_array_file`` (mappings files are lists of records). A document that
    does not parse never raises: the result is marked unavailable and
    ``has_changes`` falls back to plain text inequality.
    """
    try:
        old_data = _load(old_text, is_array_file)
        new_data = _load(new_text, is_array_file)
    except (yaml.YAMLError, ValueError) as e:
        # Constructor errors such as an impossible date come through as ValueError
        logger.debug("YAML parse failed, structured diff unavailable", error=str(e))
        return SemanticDiffResult(
            has_changes=(old_text or "") != (new_text or ""),
            changes=[],
            summary=PARSE_ERROR_SUMMARY,
            available=False,
        )

    changes = compare_values(old_data, new_data, "")
    return SemanticDiffResult(
        has_changes=len(changes) > 0,
        changes=changes,
        summary=summarize(changes),
    )


def _load(text: str | None, is_array_file: bool) -> Any:
    if not text:
        return [] if is_array_file else {}
    return yaml.safe_load(text)


def _change(
    change_type: str,
    path: str,
    description: str,
    old_value: Any = None,
    new_value: Any = None,
) -> SemanticChange:
    return SemanticChange(
        type=change_type,
        path=path,
        old_value=old_value,
        new_value=new_value,
        description=description,
    )


def _is_container(value: Any) -> bool:
    return value is None or isinstance(value, (dict, list))


def compare_values(old_value: Any, new_value: Any, base_path: str) -> list[SemanticChange]:
    """Recursively compare two parsed YAML values."""
    path = base_path or "root"

    if old_value is None:
        if new_value is not None:
            return [
                _change("added", path, f"Added {base_path or 'content'}", new_value=new_value)
            ]
        return []

    if new_value is None:
        return [
            _change("removed", path, f"Removed {base_path or 'content'}", old_value=old_value)
        ]

    if isinstance(old_value, list) or isinstance(new_value, list):
        return compare_lists(old_value, new_value, base_path)

    if isinstance(old_value, dict) and isinstance(new_value, dict):
        return compare_mappings(old_value, new_value, base_path)

    if not deep_equal(old_value, new_value):
        return [
            _change(
                "modified",
                path,
                f"Changed {base_path or 'value'}",
                old_value=old_value,
                new_value=new_value,
            )
        ]
    return []


def compare_mappings(
    old_obj: dict[Any, Any], new_obj: dict[Any, Any], base_path: str
) -> list[SemanticChange]:
    changes: list[SemanticChange] = []
    all_keys = list(old_obj) + [key for key in new_obj if key not in old_obj]

    for key in all_keys:
        current_path = f"{base_path}.{key}" if base_path else str(key)

        if key not in old_obj:
            changes.append(
                _change("added", current_path, f"Added {key}", new_value=new_obj[key])
            )
        elif key not in new_obj:
            changes.append(
                _change("removed", current_path, f"Removed {key}", old_value=old_obj[key])
            )
        else:
            old_value = old_obj[key]
            new_value = new_obj[key]
            if deep_equal(old_value, new_value):
                continue
            if _is_container(old_value) and _is_container(new_value):
                changes.extend(compare_values(old_value, new_value, current_path))
            else:
                changes.append(
                    _change(
                        "modified",
                        current_path,
                        f"Changed {key}",
                        old_value=old_value,
                        new_value=new_value,
                    )
                )

    return changes


def compare_lists(old_value: Any, new_value: Any, base_path: str) -> list[SemanticChange]:
    path = base_path or "root"

    if not isinstance(old_value, list):
        return [
            _change(
                "modified",
                path,
                f"Changed {base_path or 'value'} from non-array to array",
                old_value=old_value,
                new_value=new_value,
            )
        ]
    if not isinstance(new_value, list):
        return [
            _change(
                "modified",
                path,
                f"Changed {base_path or 'value'} from array to non-array",
                old_value=old_value,
                new_value=new_value,
            )
        ]

    if is_mapping_list(old_value) or is_mapping_list(new_value):
        return compare_mapping_records(old_value, new_value, base_path)

    if len(old_value) != len(new_value):
        return [
            _change(
                "modified",
                path,
                f"Array {base_path or 'items'} changed from "
                f"{len(old_value)} to {len(new_value)} items",
                old_value=old_value,
                new_value=new_value,
            )
        ]

    changes: list[SemanticChange] = []
    for index, (old_item, new_item) in enumerate(zip(old_value, new_value)):
        if not deep_equal(old_item, new_item):
            changes.extend(compare_values(old_item, new_item, f"{base_path}[{index}]"))
    return changes


def is_mapping_list(items: list[Any]) -> bool:
    """A list of mapping records: first item carries control_id and uuid."""
    if not items:
        return False
    first = items[0]
    return isinstance(first, dict) and "control_id" in first and "uuid" in first


def _records_by_uuid(items: list[Any]) -> dict[str, dict[str, Any]]:
    return {
        str(item["uuid"]): item
        for item in items
        if isinstance(item, dict) and "uuid" in item
    }


def compare_mapping_records(
    old_items: list[Any], new_items: list[Any], base_path: str
) -> list[SemanticChange]:
    changes: list[SemanticChange] = []
    old_records = _records_by_uuid(old_items)
    new_records = _records_by_uuid(new_items)

    for uuid, record in new_records.items():
        if uuid not in old_records:
            changes.append(
                _change("added", f"mapping[{uuid}]", "Added mapping", new_value=record)
            )

    for uuid, record in old_records.items():
        if uuid not in new_records:
            changes.append(
                _change("removed", f"mapping[{uuid}]", "Removed mapping", old_value=record)
            )

    for uuid, old_record in old_records.items():
        new_record = new_records.get(uuid)
        if new_record is not None and not deep_equal(old_record, new_record):
            changes.append(
                _change(
                    "modified",
                    f"mapping[{uuid}]",
                    "Modified mapping",
                    old_value=old_record,
                    new_value=new_record,
                )
            )

    if not changes and len(old_items) != len(new_items):
        changes.append(
            _change(
                "modified",
                base_path or "mappings",
                f"Mappings changed from {len(old_items)} to {len(new_items)} items",
                old_value=old_items,
                new_value=new_items,
            )
        )

    return changes


def _normalize_text(value: str) -> str:
    return "\n".join(line.rstrip() for line in value.split("\n")).rstrip("\n")


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality for parsed YAML values."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if isinstance(a, str) and isinstance(b, str):
        return _normalize_text(a) == _normalize_text(b)

    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))

    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(deep_equal(a[key], b[key]) for key in a)

    if type(a) is not type(b) and not (
        isinstance(a, (int, float)) and isinstance(b, (int, float))
    ):
        return False
    return a == b


def summarize(changes: list[SemanticChange]) -> str:
    """Human-readable count of changes, e.g. ``1 added, 2 modified``."""
    if not changes:
        return NO_CHANGES_SUMMARY

    counts = {"added": 0, "removed": 0, "modified": 0}
    for change in changes:
        counts[change.type] += 1

    return ", ".join(f"{count} {kind}" for kind, count in counts.items() if count > 0)
