"""
Whole-collection JSON file store.

One file holds the full array of records. Every save rewrites the entire
collection atomically: serialize, write to a temporary file in the same
directory, fsync, then rename over the target. The rename is the only
crash-safe boundary; a partially written file is never visible under the
real path.

Load policy:
- Missing file: empty collection (start fresh)
- Empty or whitespace-only file: empty collection
- Present, non-empty, but unparsable or invalid: CorruptStoreError.
  The file is left untouched for manual recovery.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Generic, List, Sequence, Type, TypeVar

import pydantic
from pydantic import BaseModel

from .errors import CorruptStoreError, LoadError, SaveError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class JsonCollectionStore(Generic[ModelT]):
    """
    Atomic load/save of a full collection of pydantic records.

    Each store owns its own re-entrant lock. Callers hold ``store.lock``
    across a read-modify-write cycle to serialize writers within the process.
    Writers in other processes are not coordinated (last writer wins).
    """

    def __init__(self, path: Path, model: Type[ModelT]):
        """
        Initialize store.

        Args:
            path: Target JSON file (parent directory is created on save)
            model: Record model used to validate every loaded item
        """
        self.path = Path(path)
        self.model = model
        self.lock = threading.RLock()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[ModelT]:
        """
        Load the full collection.

        Returns:
            List of validated records, in file order

        Raises:
            LoadError: If the file exists but cannot be read
            CorruptStoreError: If the file is non-empty but not a valid collection
        """
        if not self.path.exists():
            return []

        try:
            raw = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptStoreError(str(self.path), f"invalid UTF-8: {e}") from e
        except OSError as e:
            raise LoadError(f"Failed to read {self.path}: {e}") from e

        if not raw.strip():
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptStoreError(str(self.path), f"invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise CorruptStoreError(
                str(self.path), f"expected a JSON array, found {type(data).__name__}"
            )

        records: List[ModelT] = []
        seen_ids = set()
        for index, item in enumerate(data):
            try:
                record = self.model.model_validate(item)
            except pydantic.ValidationError as e:
                raise CorruptStoreError(str(self.path), f"record {index} is invalid: {e}") from e
            record_id = getattr(record, "id", None)
            if record_id is not None:
                if record_id in seen_ids:
                    raise CorruptStoreError(str(self.path), f"duplicate id '{record_id}'")
                seen_ids.add(record_id)
            records.append(record)

        return records

    def save(self, records: Sequence[ModelT]) -> None:
        """
        Atomically replace the stored collection.

        Either the whole new collection becomes visible or the previous
        file remains untouched.

        Raises:
            SaveError: If serialization or any filesystem step fails
        """
        try:
            payload = json.dumps(
                [record.model_dump(mode="json", by_alias=True) for record in records],
                indent=2,
                ensure_ascii=False,
            )
        except (TypeError, ValueError) as e:
            raise SaveError(f"Failed to serialize collection for {self.path}: {e}") from e

        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent),
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            logger.error("Atomic write to %s failed: %s", self.path, e, exc_info=True)
            raise SaveError(f"Failed to write {self.path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.debug("Wrote %d records to %s", len(records), self.path)
