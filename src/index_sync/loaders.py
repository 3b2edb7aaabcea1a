"""Data Loader Module

Reads and writes the JSON dataset backing the in-memory document store.
A dataset is an object with the keys 'journals', 'containers',
'published' and 'documents', each holding a list of records. A bare list
is treated as the 'documents' list.
"""

import json
from pathlib import Path
from typing import List, Dict, Any

DATASET_KEYS = ("journals", "containers", "published", "documents")


def load_dataset(path: str | Path) -> Dict[str, List[Dict[str, Any]]]:
    """Load a dataset from a JSON file.

    Args:
        path: File path to the JSON dataset

    Returns:
        Dict with one list per dataset key; missing keys become []

    Raises:
        FileNotFoundError: If file does not exist
        json.JSONDecodeError: If file is not valid JSON
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        data = {"documents": data}
    return {key: data.get(key) or [] for key in DATASET_KEYS}


def save_dataset(path: str | Path, data: Dict[str, List[Dict[str, Any]]]) -> None:
    """Write a dataset back to disk, replacing the file atomically."""
    path = Path(path)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2, default=str)
    tmp_path.replace(path)
