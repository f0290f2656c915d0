"""Tests for the ShapeSet container and its structural edits."""

from __future__ import annotations

import numpy as np
import pytest

from core.shape_set import ShapeSet
from core.shapes import RECORD_WIDTH, Triangle

IMAGE_SHAPE = (20, 20)


def _tagged_set(count: int, capacity: int | None = None) -> ShapeSet:
    # the red channel identifies each shape
    shapes = [
        Triangle((i, 0, 0), 50, [(0, 0), (1, 1), (2, 2)])
        for i in range(capacity or count)
    ]
    return ShapeSet(shapes, count)


def _tags(shape_set: ShapeSet) -> list[int]:
    return [int(shape.color[0]) for shape in shape_set.active_shapes()]


def test_initialize_random_fills_every_slot() -> None:
    rng = np.random.default_rng(0)
    shape_set = ShapeSet.initialize_random(rng, 8, IMAGE_SHAPE, 3, True, True)
    assert shape_set.capacity == 8
    assert len(shape_set.shapes) == 8
    assert len(shape_set) == 3


def test_active_count_must_fit_capacity() -> None:
    with pytest.raises(ValueError):
        _tagged_set(4, capacity=3)


def test_from_shapes_pads_latent_slots() -> None:
    rng = np.random.default_rng(1)
    source = _tagged_set(2)
    shape_set = ShapeSet.from_shapes(source.active_shapes(), 5, rng, IMAGE_SHAPE)
    assert shape_set.capacity == 5
    assert _tags(shape_set) == [0, 1]
    assert shape_set.shapes[0] is not source.shapes[0]

    with pytest.raises(ValueError):
        ShapeSet.from_shapes(source.active_shapes(), 1, rng, IMAGE_SHAPE)


def test_clone_into_copies_active_prefix_without_aliasing() -> None:
    source = _tagged_set(3, capacity=4)
    dest = _tagged_set(1, capacity=4)
    source.clone_into(dest)

    assert len(dest) == 3
    assert _tags(dest) == [0, 1, 2]
    for i in range(3):
        assert dest.shapes[i] is not source.shapes[i]
    dest.shapes[0].color[0] = 99
    assert _tags(source) == [0, 1, 2]


def test_clone_into_rejects_smaller_destination() -> None:
    with pytest.raises(ValueError):
        _tagged_set(2, capacity=4).clone_into(_tagged_set(1, capacity=2))


def test_grow_respects_capacity_and_limit() -> None:
    rng = np.random.default_rng(2)
    shape_set = _tagged_set(1, capacity=3)

    assert not shape_set.grow(rng, IMAGE_SHAPE, limit=1)
    assert len(shape_set) == 1
    assert shape_set.grow(rng, IMAGE_SHAPE)
    assert shape_set.grow(rng, IMAGE_SHAPE)
    assert len(shape_set) == 3
    assert not shape_set.grow(rng, IMAGE_SHAPE)
    assert len(shape_set) == 3


def test_shrink_keeps_order_of_remaining_shapes() -> None:
    rng = np.random.default_rng(3)
    shape_set = _tagged_set(5)
    assert shape_set.shrink(rng)

    remaining = _tags(shape_set)
    assert len(remaining) == 4
    removed = ({0, 1, 2, 3, 4} - set(remaining)).pop()
    assert remaining == [tag for tag in range(5) if tag != removed]
    # the removed object becomes latent storage at the tail
    assert int(shape_set.shapes[-1].color[0]) == removed


def test_shrink_never_removes_the_last_shape() -> None:
    rng = np.random.default_rng(4)
    shape_set = _tagged_set(1)
    assert not shape_set.shrink(rng)
    assert len(shape_set) == 1


def test_swap_two_exchanges_distinct_shapes() -> None:
    rng = np.random.default_rng(5)
    pair = _tagged_set(2)
    assert pair.swap_two(rng)
    assert _tags(pair) == [1, 0]

    single = _tagged_set(1)
    assert not single.swap_two(rng)


def test_mutate_batch_with_zero_rate_changes_nothing() -> None:
    rng = np.random.default_rng(6)
    shape_set = ShapeSet.initialize_random(rng, 6, IMAGE_SHAPE, 6, True, True)
    before = shape_set.records().copy()
    shape_set.mutate_batch(rng, IMAGE_SHAPE, 10, 0)
    assert np.array_equal(before, shape_set.records())


def test_mutate_batch_only_touches_active_shapes() -> None:
    rng = np.random.default_rng(7)
    shape_set = ShapeSet.initialize_random(rng, 6, IMAGE_SHAPE, 2, True, True)
    latent = [shape.to_record() for shape in shape_set.shapes[2:]]
    for _ in range(50):
        shape_set.mutate_batch(rng, IMAGE_SHAPE, 10, 1000)
    assert all(
        np.array_equal(record, shape.to_record())
        for record, shape in zip(latent, shape_set.shapes[2:])
    )


def test_apply_edit_policy_with_no_room_does_nothing() -> None:
    rng = np.random.default_rng(8)
    shape_set = _tagged_set(1, capacity=4)
    # one shape cannot shrink or swap, and the budget blocks growth
    for _ in range(500):
        assert shape_set.apply_edit_policy(rng, IMAGE_SHAPE, budget=1) is None
    assert len(shape_set) == 1


def test_apply_edit_policy_reports_applied_edit() -> None:
    rng = np.random.default_rng(9)
    shape_set = _tagged_set(3, capacity=6)
    seen = set()
    for _ in range(500):
        before = len(shape_set)
        edit = shape_set.apply_edit_policy(rng, IMAGE_SHAPE, budget=6)
        seen.add(edit)
        if edit == "grow":
            assert len(shape_set) == before + 1
        elif edit == "shrink":
            assert len(shape_set) == before - 1
        else:
            assert len(shape_set) == before
        assert 1 <= len(shape_set) <= 6
    assert seen <= {"grow", "shrink", "swap", None}
    assert {"grow", "shrink", "swap", None} <= seen


def test_records_pack_active_shapes() -> None:
    shape_set = _tagged_set(2, capacity=5)
    records = shape_set.records()
    assert records.shape == (2, RECORD_WIDTH)
    assert records.dtype == np.int32
    assert records.flags["C_CONTIGUOUS"]
    assert records[:, 1].tolist() == [0, 1]
