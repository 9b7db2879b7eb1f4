"""Load catalog and content records from a JSON seed file."""

import json
import logging
from pathlib import Path
from typing import Any

from .errors import SeedFileError, UniqueConstraintError
from .record_store import RecordStore

logger = logging.getLogger(__name__)


def read_seed(path: Path) -> dict[str, list[dict[str, Any]]]:
    """
    Read a seed file shaped ``{"<collection>": [record, ...], ...}``.

    Raises:
        SeedFileError: If the file is missing, not JSON, or not shaped as above.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise SeedFileError(str(path), "file not found")
    except json.JSONDecodeError as e:
        raise SeedFileError(str(path), f"invalid JSON: {e}")

    if not isinstance(data, dict):
        raise SeedFileError(str(path), "top level must be an object of collections")
    for collection, records in data.items():
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise SeedFileError(str(path), f"'{collection}' must be a list of objects")
    return data


def load_seed(store: RecordStore, path: Path) -> dict[str, int]:
    """Create every record of a seed file; returns created counts per collection.

    Records that collide with a unique index are skipped, so loading the
    same file twice is harmless for indexed collections.
    """
    counts: dict[str, int] = {}
    for collection, records in read_seed(path).items():
        created = 0
        for record in records:
            try:
                store.create(collection, record)
                created += 1
            except UniqueConstraintError as e:
                logger.info("Skipping seed record: %s", e)
        counts[collection] = created
        logger.info("Seeded %d record(s) into %s", created, collection)
    return counts
