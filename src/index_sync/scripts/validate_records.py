"""Index Record Validation Script

Validates that a dumped index record file (written by a dry run) conforms
to the record layout expected by the search index:
  - objectID is "{distinctId}_{n}" and order == n + 1
  - body is a non-empty string
  - list-valued fields (discipline, subject, coverage) are lists
  - chunks of one article are numbered 1..N without gaps

Usage:
    python -m index_sync.scripts.validate_records --path output/index_records.json

Exits with code 0 on success, 1 on validation failure, 2 on argument error.
"""

#!/usr/bin/env python
import argparse
import json
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Tuple

LIST_FIELDS = ("discipline", "subject", "coverage")
ADD_ACTIONS = {"add", "addObject"}


def load_records(path: Path) -> List[Dict[str, Any]]:
    """Load index records from a JSON file.

    Supports:
      - a JSON array of objects
      - newline-delimited JSON (JSONL)
    """
    with path.open("r", encoding="utf-8") as f:
        content = f.read().strip()

    try:
        data = json.loads(content)
        if isinstance(data, list):
            return data
        raise ValueError("Top-level JSON is not a list of records.")
    except json.JSONDecodeError:
        pass  # fall through to JSONL

    records: List[Dict[str, Any]] = []
    for line_no, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse JSON on line {line_no}: {e}") from e
        if not isinstance(obj, dict):
            raise ValueError(f"Line {line_no} JSON is not an object (got {type(obj)})")
        records.append(obj)

    return records


def validate_record(record: Dict[str, Any], idx: int) -> Tuple[List[str], List[str]]:
    """Validate a single add record.

    Returns:
        (errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    action = record.get("objectAction")
    if action not in ADD_ACTIONS:
        errors.append(f"[idx={idx}] objectAction should be an add action, got {action!r}")

    distinct_id = record.get("distinctId")
    object_id = record.get("objectID")
    order = record.get("order")

    if distinct_id is None:
        errors.append(f"[idx={idx}] missing 'distinctId'")
    elif not isinstance(object_id, str):
        errors.append(f"[idx={idx}] 'objectID' should be a string, got {type(object_id).__name__}")
    else:
        prefix, _, suffix = object_id.rpartition("_")
        if prefix != str(distinct_id) or not suffix.isdigit():
            errors.append(f"[idx={idx}] objectID {object_id!r} does not match distinctId {distinct_id!r}")
        elif not isinstance(order, int) or order != int(suffix) + 1:
            errors.append(f"[idx={idx}] order {order!r} inconsistent with objectID {object_id!r}")

    body = record.get("body")
    if not isinstance(body, str):
        errors.append(f"[idx={idx}] 'body' should be a string, got {type(body).__name__}")
    elif not body.strip():
        errors.append(f"[idx={idx}] 'body' is empty/whitespace")

    for field in LIST_FIELDS:
        value = record.get(field)
        if value is not None and not isinstance(value, list):
            errors.append(f"[idx={idx}] '{field}' should be a list, got {type(value).__name__}")

    for field in ("title", "url"):
        if not record.get(field):
            warnings.append(f"[idx={idx}] record missing expected field '{field}'")

    return errors, warnings


def validate_chunk_sequences(records: List[Dict[str, Any]]) -> List[str]:
    """Check that each article's chunk orders run 1..N."""
    orders: Dict[Any, List[int]] = defaultdict(list)
    for record in records:
        if isinstance(record.get("order"), int):
            orders[record.get("distinctId")].append(record["order"])

    errors: List[str] = []
    for distinct_id, seen in orders.items():
        if sorted(seen) != list(range(1, len(seen) + 1)):
            errors.append(f"[distinctId={distinct_id}] chunk orders {sorted(seen)} are not 1..{len(seen)}")
    return errors


def main(argv: list[str] | None = None) -> None:
    """Validate a dumped index record file.

    Raises:
        SystemExit: With code 0 on success, 1 on validation failure
    """
    parser = argparse.ArgumentParser(
        description="Validate index records JSON output."
    )
    parser.add_argument(
        "--path",
        type=str,
        required=True,
        help="Path to index_records.json",
    )
    args = parser.parse_args(argv)

    try:
        records = load_records(Path(args.path))
    except Exception as e:
        print(f"FAILED TO LOAD FILE: {e}")
        raise SystemExit(1)

    all_errors: List[str] = []
    all_warnings: List[str] = []

    for idx, record in enumerate(records):
        errors, warnings = validate_record(record, idx)
        all_errors.extend(errors)
        all_warnings.extend(warnings)
    all_errors.extend(validate_chunk_sequences(records))

    if all_errors:
        print("VALIDATION FAILED:\n")
        for err in all_errors:
            print(err)
        print(f"\nTotal errors: {len(all_errors)}")
        raise SystemExit(1)

    print("VALIDATION PASSED")
    print(f"Total records: {len(records)}")
    if all_warnings:
        print("\nWarnings (non-fatal):")
        for w in all_warnings:
            print(w)

    raise SystemExit(0)


if __name__ == "__main__":
    main()
