"""Unit tests for the exact inner-product vector index."""

import threading
from unittest.mock import patch

import numpy as np
import pytest

from docquery.errors import DimensionMismatchError, DuplicateIdError
from docquery.vectorstore.faiss_index import VectorIndex, VectorIndexState


def _unit_vectors(n: int, dim: int, seed: int = 7) -> np.ndarray:
    rng = np.random.default_rng(seed)
    vectors = rng.normal(size=(n, dim)).astype(np.float32)
    return vectors / np.linalg.norm(vectors, axis=1, keepdims=True)


@pytest.fixture
def two_d_index():
    index = VectorIndex(dimension=2)
    index.insert("d1:0", [1.0, 0.0])
    index.insert("d1:1", [0.0, 1.0])
    return index


@pytest.fixture
def populated_index():
    index = VectorIndex(dimension=8)
    vectors = _unit_vectors(20, 8)
    index.insert_batch((f"doc:{i}", v) for i, v in enumerate(vectors))
    return index, vectors


def _assert_maps_dense(index: VectorIndex):
    state = index.export_state()
    id_to_position = dict(state.id_to_position)
    position_to_id = dict(state.position_to_id)
    assert sorted(position_to_id) == list(range(index.count))
    assert {p: i for i, p in id_to_position.items()} == position_to_id
    assert len(state.vectors) == index.count
    assert state.next_position == index.count


class TestEndToEndScenarios:
    def test_search_returns_exact_match_first(self, two_d_index):
        hits = two_d_index.search([1.0, 0.0], 1)
        assert len(hits) == 1
        assert hits[0].external_id == "d1:0"
        assert hits[0].score == 1.0

    def test_search_after_remove(self, two_d_index):
        assert two_d_index.remove("d1:0") is True
        assert two_d_index.count == 1
        hits = two_d_index.search([1.0, 0.0], 1)
        assert [(h.external_id, h.score) for h in hits] == [("d1:1", 0.0)]


class TestInsert:
    def test_insert_returns_sequential_positions(self):
        index = VectorIndex(dimension=2)
        assert index.insert("a", [1.0, 0.0]) == 0
        assert index.insert("b", [0.0, 1.0]) == 1
        assert index.count == 2
        assert len(index) == 2
        assert index.next_position == 2

    def test_dimension_mismatch_rejected(self):
        index = VectorIndex(dimension=3)
        with pytest.raises(DimensionMismatchError) as exc_info:
            index.insert("a", [1.0, 0.0])
        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2
        assert index.count == 0
        assert not index.contains("a")

    def test_duplicate_id_rejected_and_existing_untouched(self):
        index = VectorIndex(dimension=2)
        index.insert("a", [1.0, 0.0])
        with pytest.raises(DuplicateIdError):
            index.insert("a", [0.0, 1.0])
        assert index.count == 1
        assert index.get_vector("a") == [1.0, 0.0]

    def test_contains(self, two_d_index):
        assert two_d_index.contains("d1:0")
        assert "d1:1" in two_d_index
        assert "d2:0" not in two_d_index


class TestInsertBatch:
    def test_batch_appends_in_order(self):
        index = VectorIndex(dimension=2)
        result = index.insert_batch([("a", [1.0, 0.0]), ("b", [0.0, 1.0]), ("c", [0.6, 0.8])])
        assert result.inserted == ["a", "b", "c"]
        assert result.positions == [0, 1, 2]
        assert result.skipped == []
        assert index.position_of("c") == 2

    def test_existing_ids_skipped_not_failed(self):
        index = VectorIndex(dimension=2)
        index.insert("a", [1.0, 0.0])
        result = index.insert_batch([("a", [0.0, 1.0]), ("b", [0.0, 1.0])])
        assert result.inserted == ["b"]
        assert result.skipped == ["a"]
        assert index.count == 2
        assert index.get_vector("a") == [1.0, 0.0]

    def test_repeated_id_within_batch_skipped(self):
        index = VectorIndex(dimension=2)
        result = index.insert_batch([("a", [1.0, 0.0]), ("a", [0.0, 1.0])])
        assert result.inserted == ["a"]
        assert result.skipped == ["a"]
        assert index.count == 1

    def test_dimension_mismatch_applies_nothing(self):
        index = VectorIndex(dimension=2)
        with pytest.raises(DimensionMismatchError):
            index.insert_batch([("a", [1.0, 0.0]), ("b", [1.0, 0.0, 0.0])])
        assert index.count == 0
        assert not index.contains("a")

    def test_empty_batch(self):
        index = VectorIndex(dimension=2)
        result = index.insert_batch([])
        assert result.inserted == []
        assert index.count == 0


class TestRemove:
    def test_remove_absent_returns_false(self, two_d_index):
        assert two_d_index.remove("missing") is False
        assert two_d_index.count == 2

    def test_remove_compacts_positions(self):
        index = VectorIndex(dimension=2)
        index.insert_batch([("a", [1.0, 0.0]), ("b", [0.0, 1.0]), ("c", [0.6, 0.8])])
        index.remove("a")
        assert index.position_of("b") == 0
        assert index.position_of("c") == 1
        _assert_maps_dense(index)

    def test_remove_batch_rebuilds_once(self, populated_index):
        index, _ = populated_index
        with patch.object(index, "rebuild", wraps=index.rebuild) as spy:
            removed = index.remove_batch(["doc:1", "doc:5", "doc:9", "missing"])
        assert removed == 3
        assert spy.call_count == 1

    def test_remove_batch_without_matches_skips_rebuild(self, populated_index):
        index, _ = populated_index
        with patch.object(index, "rebuild", wraps=index.rebuild) as spy:
            assert index.remove_batch(["missing", "also-missing"]) == 0
        spy.assert_not_called()
        assert index.count == 20

    def test_remove_batch_consistency(self, populated_index):
        index, vectors = populated_index
        removed_ids = {"doc:0", "doc:3", "doc:4", "doc:19"}

        assert index.remove_batch(sorted(removed_ids)) == len(removed_ids)

        assert index.count == 20 - len(removed_ids)
        for external_id in removed_ids:
            assert not index.contains(external_id)
        for i, vector in enumerate(vectors):
            external_id = f"doc:{i}"
            if external_id in removed_ids:
                continue
            top = index.search(vector, 1)[0]
            assert top.external_id == external_id
            assert top.score == pytest.approx(1.0, abs=1e-5)
        _assert_maps_dense(index)

    def test_survivors_keep_relative_order(self, populated_index):
        index, _ = populated_index
        index.remove_batch(["doc:2", "doc:10"])
        order = [external_id for external_id, _ in index.export_state().id_to_position]
        expected = [f"doc:{i}" for i in range(20) if i not in (2, 10)]
        assert order == expected


class TestRebuild:
    def test_rebuild_is_idempotent(self, populated_index):
        index, _ = populated_index
        index.remove("doc:7")
        index.rebuild()
        first = index.export_state()
        index.rebuild()
        assert index.export_state() == first

    def test_rebuild_from_replaces_everything(self, two_d_index):
        restored = two_d_index.rebuild_from([("x:0", [0.6, 0.8]), ("x:1", [0.8, 0.6])])
        assert restored == 2
        assert not two_d_index.contains("d1:0")
        assert two_d_index.position_of("x:0") == 0
        assert two_d_index.position_of("x:1") == 1
        _assert_maps_dense(two_d_index)

    def test_rebuild_from_skips_bad_entries(self, caplog):
        index = VectorIndex(dimension=2)
        with caplog.at_level("WARNING"):
            restored = index.rebuild_from([
                ("a", [1.0, 0.0]),
                ("bad", [1.0, 0.0, 0.0]),
                ("a", [0.0, 1.0]),
                ("b", [0.0, 1.0]),
            ])
        assert restored == 2
        assert index.count == 2
        assert not index.contains("bad")
        assert index.get_vector("a") == [1.0, 0.0]
        assert "bad" in caplog.text

    def test_rebuild_from_empty(self, two_d_index):
        assert two_d_index.rebuild_from([]) == 0
        assert two_d_index.count == 0
        assert two_d_index.search([1.0, 0.0], 5) == []


class TestSearch:
    def test_empty_index_returns_empty_list(self):
        assert VectorIndex(dimension=2).search([1.0, 0.0], 5) == []

    def test_wrong_query_dimension_rejected(self, two_d_index):
        with pytest.raises(DimensionMismatchError):
            two_d_index.search([1.0, 0.0, 0.0], 1)

    def test_k_clamped_to_count(self, two_d_index):
        assert len(two_d_index.search([1.0, 0.0], 10)) == 2

    def test_non_positive_k_returns_nothing(self, two_d_index):
        assert two_d_index.search([1.0, 0.0], 0) == []

    def test_ranked_by_descending_score(self):
        index = VectorIndex(dimension=2)
        index.insert_batch([("low", [0.0, 1.0]), ("high", [1.0, 0.0]), ("mid", [0.6, 0.8])])
        hits = index.search([1.0, 0.0], 3)
        assert [h.external_id for h in hits] == ["high", "mid", "low"]
        assert hits[0].score >= hits[1].score >= hits[2].score

    def test_ties_favor_earlier_insertion(self):
        index = VectorIndex(dimension=2)
        index.insert_batch([("first", [1.0, 0.0]), ("second", [1.0, 0.0]), ("other", [0.0, 1.0])])
        assert index.search([1.0, 0.0], 1)[0].external_id == "first"

        index.remove("first")
        index.insert("first", [1.0, 0.0])
        assert [h.external_id for h in index.search([1.0, 0.0], 2)] == ["second", "first"]

    def test_low_and_negative_scores_are_not_dropped(self):
        index = VectorIndex(dimension=2)
        index.insert("opposite", [-1.0, 0.0])
        hits = index.search([1.0, 0.0], 1)
        assert len(hits) == 1
        assert hits[0].external_id == "opposite"
        assert hits[0].score == -1.0

    def test_scores_are_raw_inner_products(self):
        index = VectorIndex(dimension=2)
        index.insert("long", [3.0, 0.0])
        assert index.search([2.0, 0.0], 1)[0].score == pytest.approx(6.0)


class TestState:
    def test_from_state_round_trip(self, populated_index):
        index, vectors = populated_index
        restored = VectorIndex.from_state(index.export_state())
        assert restored.export_state() == index.export_state()
        assert restored.search(vectors[3], 5) == index.search(vectors[3], 5)

    def test_from_state_rebuilds_inconsistent_maps(self):
        state = VectorIndexState(
            dimension=2,
            vectors=[[1.0, 0.0], [0.0, 1.0]],
            id_to_position=[("x", 1)],
            position_to_id=[(1, "x")],
            next_position=2,
        )
        index = VectorIndex.from_state(state)
        assert index.count == 1
        assert index.position_of("x") == 0
        assert index.get_vector("x") == [0.0, 1.0]

    def test_invalid_dimension(self):
        with pytest.raises(ValueError):
            VectorIndex(dimension=0)


class TestLocking:
    def test_count_waits_for_lock_holder(self):
        index = VectorIndex(dimension=2)
        index.insert("a", [1.0, 0.0])
        seen = []

        with index.lock:
            reader = threading.Thread(target=lambda: seen.append(index.count))
            reader.start()
            reader.join(timeout=0.2)
            assert seen == []
            index.insert("b", [0.0, 1.0])

        reader.join(timeout=5)
        assert seen == [2]

    def test_searches_never_observe_a_mutation_in_progress(self):
        vectors = _unit_vectors(30, 4, seed=11)
        stable = [(f"stable:{i}", v) for i, v in enumerate(vectors[:20])]
        churn = [(f"churn:{i}", v) for i, v in enumerate(vectors[20:])]
        churn_ids = [external_id for external_id, _ in churn]
        stable_ids = {external_id for external_id, _ in stable}
        all_ids = stable_ids | set(churn_ids)

        index = VectorIndex(dimension=4)
        index.insert_batch(stable)
        present = set(stable_ids)
        failures = []
        done = threading.Event()

        def mutate():
            try:
                for _ in range(200):
                    with index.lock:
                        index.insert_batch(churn)
                        present.update(churn_ids)
                        index.export_state()
                    with index.lock:
                        index.remove_batch(churn_ids)
                        present.difference_update(churn_ids)
                        index.export_state()
            except Exception as e:
                failures.append(e)
            finally:
                done.set()

        def query():
            try:
                while not done.is_set():
                    ids = {hit.external_id for hit in index.search(vectors[0], len(all_ids))}
                    if ids not in (stable_ids, all_ids):
                        failures.append(f"partial result: {sorted(ids)}")
                    if index.count not in (len(stable_ids), len(all_ids)):
                        failures.append(f"partial count: {index.count}")
                    with index.lock:
                        ids = {hit.external_id for hit in index.search(vectors[0], len(all_ids))}
                        if ids != present:
                            failures.append(f"stale ids: {sorted(ids ^ present)}")
            except Exception as e:
                failures.append(e)

        threads = [threading.Thread(target=mutate)] + [threading.Thread(target=query) for _ in range(3)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert not any(thread.is_alive() for thread in threads)
        assert failures == []
        assert index.count == len(stable_ids)
