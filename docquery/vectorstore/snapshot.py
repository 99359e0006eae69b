"""Durable snapshots of the vector index.

A snapshot is one JSON document holding the ordered vectors, both
identifier/position maps as ordered pairs, and the next-position counter.
Snapshots are replaced atomically, so a crash mid-write leaves the previous
snapshot intact.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from docquery.errors import CorruptSnapshotError
from docquery.store.atomic import write_atomic
from docquery.vectorstore.faiss_index import VectorIndex, VectorIndexState

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

RecoverySource = Callable[[], Iterable[tuple[str, list[float]]]]


class IndexSnapshotModel(BaseModel):
    """On-disk schema of an index snapshot."""

    version: int = SNAPSHOT_VERSION
    dimension: int = Field(gt=0)
    next_position: int = Field(ge=0)
    id_to_position: list[tuple[str, int]]
    position_to_id: list[tuple[int, str]]
    vectors: list[list[float]]
    saved_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _check_structure(self) -> "IndexSnapshotModel":
        if self.version != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version {self.version}")

        for i, vector in enumerate(self.vectors):
            if len(vector) != self.dimension:
                raise ValueError(
                    f"vector at position {i} has dimension {len(vector)}, expected {self.dimension}"
                )

        by_id = dict(self.id_to_position)
        by_position = dict(self.position_to_id)
        if len(by_id) != len(self.id_to_position) or len(by_position) != len(self.position_to_id):
            raise ValueError("identifier maps contain duplicate keys")
        if {position: external_id for external_id, position in by_id.items()} != by_position:
            raise ValueError("identifier maps are not inverses")
        for position in by_position:
            if not 0 <= position < len(self.vectors):
                raise ValueError(f"position {position} is out of range")
        return self

    @classmethod
    def from_state(cls, state: VectorIndexState) -> "IndexSnapshotModel":
        return cls(
            dimension=state.dimension,
            next_position=state.next_position,
            id_to_position=state.id_to_position,
            position_to_id=state.position_to_id,
            vectors=state.vectors,
        )

    def to_state(self) -> VectorIndexState:
        return VectorIndexState(
            dimension=self.dimension,
            vectors=self.vectors,
            id_to_position=list(self.id_to_position),
            position_to_id=list(self.position_to_id),
            next_position=self.next_position,
        )


class IndexSnapshot:
    """Saves and restores a ``VectorIndex`` at a fixed path."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def save(self, index: VectorIndex) -> None:
        """Write the index state, atomically replacing any previous snapshot.

        Errors propagate; the in-memory index is left as it is.
        """
        with index.lock:
            model = IndexSnapshotModel.from_state(index.export_state())
        write_atomic(self._path, model.model_dump_json())
        logger.debug("Saved index snapshot with %d vectors to %s", len(model.vectors), self._path)

    def load(self, dimension: int) -> VectorIndex | None:
        """Restore the index, or return None when no snapshot exists.

        Raises:
            CorruptSnapshotError: If the snapshot is unparseable, fails
                structural validation, or was written for another dimension.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        try:
            model = IndexSnapshotModel.model_validate_json(raw)
        except ValidationError as e:
            raise CorruptSnapshotError(f"invalid index snapshot {self._path}: {e}") from e

        if model.dimension != dimension:
            raise CorruptSnapshotError(
                f"snapshot dimension {model.dimension} does not match configured dimension {dimension}"
            )

        index = VectorIndex.from_state(model.to_state())
        logger.info("Loaded index snapshot with %d vectors from %s", index.count, self._path)
        return index

    def load_or_recover(
        self,
        dimension: int,
        recovery_source: RecoverySource | None = None,
    ) -> VectorIndex:
        """Restore the index, falling back to an empty or rebuilt one.

        A missing or corrupt snapshot yields an empty index. When
        ``recovery_source`` is given it is asked for every stored
        (external_id, embedding) pair, the index is rebuilt from them and the
        result is saved.
        """
        try:
            index = self.load(dimension)
        except CorruptSnapshotError as e:
            logger.warning("%s; starting from an empty index", e)
            index = None

        if index is not None:
            return index

        index = VectorIndex(dimension)
        if recovery_source is not None:
            restored = index.rebuild_from(recovery_source())
            if restored:
                self.save(index)
                logger.info("Recovered index with %d vectors from the record store", restored)
        return index
