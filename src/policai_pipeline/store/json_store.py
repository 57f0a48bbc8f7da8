"""JSON document store.

Each collection is one file holding a JSON array. Reads load the whole array,
writes replace it. There is no locking: at most one writer (one active pipeline
run) is assumed per directory.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List

from ..errors import StoreError
from ..log import get_logger

logger = get_logger("store")


class JsonStore:
    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def path_for(self, collection: str) -> Path:
        return self.base_dir / f"{collection}.json"

    def read_all(self, collection: str) -> List[Dict[str, Any]]:
        """Missing collections read as empty. A corrupt file raises StoreError."""
        path = self.path_for(collection)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read {path}: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"Collection {path} is not a JSON array")
        return data

    def write_all(self, collection: str, records: List[Dict[str, Any]]):
        path = self.path_for(collection)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write beside the target then swap in, so readers never see half a file.
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{collection}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(records, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StoreError(f"Cannot write {path}: {e}") from e
        logger.debug(f"Wrote {len(records)} records to {path}")

    def upsert(self, collection: str, record: Dict[str, Any], key: str = "id"):
        self.upsert_many(collection, [record], key=key)

    def upsert_many(self, collection: str, records: Iterable[Dict[str, Any]], key: str = "id"):
        """Replace records with a matching key in place, append the rest."""
        existing = self.read_all(collection)
        index = {item.get(key): i for i, item in enumerate(existing)}
        for record in records:
            idx = index.get(record[key])
            if idx is None:
                index[record[key]] = len(existing)
                existing.append(record)
            else:
                existing[idx] = record
        self.write_all(collection, existing)
