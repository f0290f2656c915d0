"""Tests for the percentage difference metric."""

from __future__ import annotations

import math

import numpy as np
import pytest

from core.metrics import MAX_PIXEL_DISTANCE, score, total_distance
from core.rasterizer import render
from core.shape_set import ShapeSet
from core.shapes import Triangle


def test_identical_images_score_zero() -> None:
    rng = np.random.default_rng(0)
    image = rng.integers(0, 256, size=(7, 9, 3), dtype=np.uint8)
    assert score(image, image.copy()) == pytest.approx(0.0)


def test_black_against_white_is_near_the_maximum() -> None:
    black = np.zeros((4, 5, 3), dtype=np.uint8)
    white = np.full((4, 5, 3), 255, dtype=np.uint8)
    expected = 255 * math.sqrt(3) / MAX_PIXEL_DISTANCE * 100
    assert score(black, white) == pytest.approx(expected)
    assert score(black, white) < 100.0


def test_score_is_symmetric() -> None:
    rng = np.random.default_rng(1)
    a = rng.integers(0, 256, size=(6, 6, 3), dtype=np.uint8)
    b = rng.integers(0, 256, size=(6, 6, 3), dtype=np.uint8)
    assert score(a, b) == pytest.approx(score(b, a))


def test_rendered_red_triangle_against_red_target() -> None:
    target = np.zeros((2, 2, 3), dtype=np.uint8)
    target[:, :, 0] = 255
    triangle = Triangle((255, 0, 0), 90, [(0, 0), (1, 0), (0, 1)])
    rendered = render(ShapeSet([triangle], 1), (2, 2))

    # three pixels off by 26 in red, one black pixel off by 255
    assert total_distance(rendered, target) == pytest.approx(333.0)
    assert score(rendered, target) == pytest.approx(333 / 1768 * 100)
    assert score(np.zeros_like(target), target) == pytest.approx(1020 / 1768 * 100)


def test_mismatched_shapes_are_rejected() -> None:
    with pytest.raises(ValueError, match="shapes differ"):
        score(np.zeros((2, 2, 3), dtype=np.uint8), np.zeros((2, 3, 3), dtype=np.uint8))
