"""Similarity Index - cosine nearest-neighbour search over clause embeddings.

In-memory, mutex-guarded structure for precedent corpora of modest size.
Rules:
- ``index`` is idempotent per record id: re-indexing replaces the vector and
  makes the record the most recently indexed
- ``query`` ranks by descending cosine similarity, ties broken
  most-recently-indexed first
- zero vectors have similarity 0.0 to everything
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from app.models.clause import ClauseRecord, SimilarClause
from core.errors import DimensionMismatchError, InvalidQueryError

logger = logging.getLogger("clauseguard.similarity_index")

_RECORD_FIELDS = set(ClauseRecord.model_fields)


@dataclass(frozen=True)
class _Entry:
    record: ClauseRecord
    unit: np.ndarray
    sequence: int


class SimilarityIndex:
    """Thread-safe cosine similarity index.

    Example:
        index = SimilarityIndex(dimensions=768)
        index.index(record, vector)
        top = index.query(query_vector, k=3)
    """

    def __init__(self, dimensions: int) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions
        self._entries: dict[str, _Entry] = {}
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    def _as_unit(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float64)
        if array.ndim != 1 or array.shape[0] != self.dimensions:
            actual = array.shape[0] if array.ndim == 1 else int(array.size)
            raise DimensionMismatchError(self.dimensions, actual)
        if not np.all(np.isfinite(array)):
            raise InvalidQueryError("Vector contains non-finite values")
        norm = np.linalg.norm(array)
        if norm == 0:
            return np.zeros(self.dimensions, dtype=np.float64)
        return array / norm

    def validate(self, vector: Sequence[float]) -> None:
        """Raise the error ``index`` would raise for this vector."""
        self._as_unit(vector)

    def index(self, record: ClauseRecord, vector: Sequence[float]) -> None:
        """Insert or replace a record's vector.

        Raises:
            DimensionMismatchError: If the vector length is wrong.
        """
        unit = self._as_unit(vector)
        with self._lock:
            replaced = record.id in self._entries
            self._entries[record.id] = _Entry(record=record, unit=unit, sequence=next(self._sequence))
        if replaced:
            logger.debug(f"Re-indexed clause {record.id}")

    def hydrate(self, rows: Iterable[tuple[ClauseRecord, Sequence[float]]]) -> int:
        """Bulk-load records in iteration order. Returns the number indexed."""
        prepared = [(record, self._as_unit(vector)) for record, vector in rows]
        with self._lock:
            for record, unit in prepared:
                self._entries[record.id] = _Entry(record=record, unit=unit, sequence=next(self._sequence))
        logger.info(f"Hydrated similarity index with {len(prepared)} clauses")
        return len(prepared)

    def remove(self, record_id: str) -> bool:
        """Remove a record. Returns False if it was not indexed."""
        with self._lock:
            return self._entries.pop(record_id, None) is not None

    def query(self, vector: Sequence[float], k: int) -> list[SimilarClause]:
        """Return up to ``k`` records most similar to ``vector``.

        Raises:
            InvalidQueryError: If ``k <= 0``.
            DimensionMismatchError: If the vector length is wrong.
        """
        if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
            raise InvalidQueryError(f"k must be a positive integer, got {k!r}")
        query_unit = self._as_unit(vector)

        # Rank outside the lock on a consistent snapshot
        with self._lock:
            snapshot = list(self._entries.values())
        if not snapshot:
            return []

        matrix = np.stack([entry.unit for entry in snapshot])
        similarities = np.clip(matrix @ query_unit, -1.0, 1.0)
        sequences = np.array([entry.sequence for entry in snapshot])

        # lexsort: last key is primary
        order = np.lexsort((-sequences, -similarities))[:k]

        return [
            SimilarClause(
                **snapshot[i].record.model_dump(include=_RECORD_FIELDS),
                similarity=float(similarities[i]),
            )
            for i in order
        ]

    def get(self, record_id: str) -> ClauseRecord | None:
        with self._lock:
            entry = self._entries.get(record_id)
        return entry.record if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._entries
