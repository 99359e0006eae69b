"""Exact inner-product vector index keyed by external chunk identifiers.

Wraps a brute-force ``faiss.IndexFlatIP``. FAISS only addresses vectors by
dense position, so the index keeps the logical vector list alongside two
maps (external id -> position, position -> external id) and regenerates
all three after any deletion.

Scores are raw inner products. They equal cosine similarity only when the
embedding stage produces unit-length vectors; the index never normalizes.
"""

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

import faiss
import numpy as np

from docquery.errors import DimensionMismatchError, DuplicateIdError
from docquery.models.query import SearchHit

logger = logging.getLogger(__name__)

DEFAULT_DIMENSION = 384


@dataclass
class VectorIndexState:
    """Full exported index state; the unit of persistence.

    ``vectors[i]`` is the vector at position ``i``.
    """

    dimension: int
    vectors: list[list[float]]
    id_to_position: list[tuple[str, int]]
    position_to_id: list[tuple[int, str]]
    next_position: int


@dataclass
class BatchInsertResult:
    """Outcome of ``VectorIndex.insert_batch``."""

    positions: list[int] = field(default_factory=list)
    inserted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class VectorIndex:
    """Brute-force nearest-neighbor index with stable external identifiers.

    Positions are internal and change on every rebuild; only external ids
    are stable. All operations take ``lock``; callers that persist the index
    after a mutation should hold it across both steps.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        if dimension <= 0:
            raise ValueError("dimension must be > 0")
        self._dimension = dimension
        self.lock = threading.RLock()
        self._reset()

    def _reset(self) -> None:
        self._index = faiss.IndexFlatIP(self._dimension)
        self._vectors: list[np.ndarray | None] = []
        self._id_to_position: dict[str, int] = {}
        self._position_to_id: dict[int, str] = {}
        self._next_position = 0

    def _as_vector(self, vector) -> np.ndarray:
        arr = np.asarray(vector, dtype=np.float32)
        if arr.ndim != 1 or arr.shape[0] != self._dimension:
            actual = arr.shape[0] if arr.ndim == 1 else arr.size
            raise DimensionMismatchError(self._dimension, actual)
        return np.ascontiguousarray(arr)

    def _append(self, ids: list[str], vectors: list[np.ndarray]) -> list[int]:
        if not vectors:
            return []
        self._index.add(np.vstack(vectors))
        positions = []
        for external_id, vector in zip(ids, vectors):
            position = self._next_position
            self._vectors.append(vector)
            self._id_to_position[external_id] = position
            self._position_to_id[position] = external_id
            positions.append(position)
            self._next_position += 1
        return positions

    def insert(self, external_id: str, vector) -> int:
        """Append one vector and return its position.

        Raises:
            DimensionMismatchError: If the vector length differs from ``dimension``.
            DuplicateIdError: If ``external_id`` is already indexed.
        """
        arr = self._as_vector(vector)
        with self.lock:
            if external_id in self._id_to_position:
                raise DuplicateIdError(external_id)
            return self._append([external_id], [arr])[0]

    def insert_batch(self, entries: Iterable[tuple[str, object]]) -> BatchInsertResult:
        """Append many vectors in one bulk add.

        Every vector is checked before anything is added, so a dimension
        mismatch leaves the index untouched. Ids that are already indexed,
        or repeated within the batch, are skipped and reported rather than
        failing the batch.
        """
        prepared = [(external_id, self._as_vector(vector)) for external_id, vector in entries]

        with self.lock:
            result = BatchInsertResult()
            ids: list[str] = []
            vectors: list[np.ndarray] = []
            seen: set[str] = set()
            for external_id, arr in prepared:
                if external_id in self._id_to_position or external_id in seen:
                    logger.warning("Vector with id %s already exists, skipping", external_id)
                    result.skipped.append(external_id)
                    continue
                seen.add(external_id)
                ids.append(external_id)
                vectors.append(arr)

            result.positions = self._append(ids, vectors)
            result.inserted = ids
            return result

    def remove(self, external_id: str) -> bool:
        """Remove one vector; returns False if the id is not indexed."""
        with self.lock:
            position = self._id_to_position.pop(external_id, None)
            if position is None:
                return False
            self._position_to_id.pop(position, None)
            self._vectors[position] = None
            self.rebuild()
            return True

    def remove_batch(self, external_ids: Iterable[str]) -> int:
        """Remove many vectors with at most one rebuild; returns how many were removed."""
        with self.lock:
            removed = 0
            for external_id in external_ids:
                position = self._id_to_position.pop(external_id, None)
                if position is None:
                    continue
                self._position_to_id.pop(position, None)
                self._vectors[position] = None
                removed += 1

            if removed:
                self.rebuild()
            return removed

    def rebuild(self) -> None:
        """Regenerate dense positions and both maps from the surviving vectors.

        Survivors keep their relative order. Slots that were removed, or that
        no id maps to, are dropped.
        """
        with self.lock:
            survivors = [
                (self._position_to_id[position], vector)
                for position, vector in enumerate(self._vectors)
                if vector is not None and position in self._position_to_id
            ]
            self._reset()
            self._append(
                [external_id for external_id, _ in survivors],
                [vector for _, vector in survivors],
            )
            logger.info("Index rebuilt with %d vectors", len(survivors))

    def rebuild_from(self, pairs: Iterable[tuple[str, object]]) -> int:
        """Discard all state and reload from (external_id, vector) pairs.

        Pairs with a wrong dimension or an id seen earlier in the input are
        logged and skipped. Returns the number of vectors indexed.
        """
        with self.lock:
            self._reset()
            ids: list[str] = []
            vectors: list[np.ndarray] = []
            seen: set[str] = set()
            skipped = 0
            for external_id, vector in pairs:
                try:
                    arr = self._as_vector(vector)
                except DimensionMismatchError as e:
                    logger.warning("Skipping %s: %s", external_id, e)
                    skipped += 1
                    continue
                if external_id in seen:
                    logger.warning("Skipping %s: duplicate id", external_id)
                    skipped += 1
                    continue
                seen.add(external_id)
                ids.append(external_id)
                vectors.append(arr)

            self._append(ids, vectors)
            logger.info("Index rebuilt from %d vectors (%d skipped)", len(ids), skipped)
            return len(ids)

    def search(self, vector, k: int = 5) -> list[SearchHit]:
        """Return up to ``k`` hits ordered by descending inner product.

        Equal scores are ordered by position, so earlier insertions win.
        Low scores are never filtered out here.
        """
        query = self._as_vector(vector)
        with self.lock:
            total = self._index.ntotal
            if total == 0:
                return []
            k = min(k, total)
            if k < 1:
                return []

            # Score every vector so ties at the cutoff resolve deterministically
            scores, labels = self._index.search(query.reshape(1, -1), total)
            ranked = sorted(
                (
                    (float(score), int(position))
                    for score, position in zip(scores[0], labels[0])
                    if position >= 0
                ),
                key=lambda item: (-item[0], item[1]),
            )
            return [
                SearchHit(external_id=self._position_to_id[position], score=score)
                for score, position in ranked[:k]
                if position in self._position_to_id
            ]

    def contains(self, external_id: str) -> bool:
        with self.lock:
            return external_id in self._id_to_position

    def __contains__(self, external_id: str) -> bool:
        return self.contains(external_id)

    def get_vector(self, external_id: str) -> list[float] | None:
        """Return the stored vector for an id, or None if absent."""
        with self.lock:
            position = self._id_to_position.get(external_id)
            if position is None:
                return None
            return self._vectors[position].tolist()

    @property
    def count(self) -> int:
        """Return the number of indexed vectors."""
        with self.lock:
            return self._index.ntotal

    def __len__(self) -> int:
        return self.count

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def next_position(self) -> int:
        return self._next_position

    def position_of(self, external_id: str) -> int | None:
        with self.lock:
            return self._id_to_position.get(external_id)

    def export_state(self) -> VectorIndexState:
        with self.lock:
            return VectorIndexState(
                dimension=self._dimension,
                vectors=[v.tolist() for v in self._vectors if v is not None],
                id_to_position=list(self._id_to_position.items()),
                position_to_id=list(self._position_to_id.items()),
                next_position=self._next_position,
            )

    @classmethod
    def from_state(cls, state: VectorIndexState) -> "VectorIndex":
        """Restore an index from exported state.

        The caller is responsible for structural validation. If the maps do
        not densely cover the vectors, or the position counter disagrees
        with the vector count, the restored index is rebuilt.
        """
        index = cls(state.dimension)
        vectors = [index._as_vector(v) for v in state.vectors]
        if vectors:
            index._index.add(np.vstack(vectors))
        index._vectors = list(vectors)
        index._id_to_position = dict(state.id_to_position)
        index._position_to_id = dict(state.position_to_id)
        index._next_position = state.next_position

        dense = set(index._position_to_id) == set(range(len(vectors)))
        if not dense or state.next_position != len(vectors):
            logger.warning(
                "Restored index is inconsistent (%d vectors, %d mapped, next position %d); rebuilding",
                len(vectors),
                len(index._position_to_id),
                state.next_position,
            )
            index.rebuild()
        return index
