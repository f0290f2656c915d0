import numpy as np
from numba import njit
from typing import Optional, Tuple

from core.shapes import (
    CIRCLE,
    REC_B,
    REC_COORDS,
    REC_G,
    REC_KIND,
    REC_OPACITY,
    REC_R,
    TRIANGLE,
)
from core.shape_set import ShapeSet


@njit(fastmath=True)
def _round_half_away(value: float) -> int:
    """Rounds to the nearest integer, halves away from zero"""
    if value >= 0.0:
        return int(np.floor(value + 0.5))
    return -int(np.floor(-value + 0.5))


@njit(fastmath=True)
def _draw_hline_rgb(image: np.ndarray, x1, x2, y, r, g, b, alpha):
    """
    Alpha-blends a horizontal span of one color onto an RGB canvas

    `new_pixel = alpha*color + (1-alpha)*background`, with the colored term
    truncated to an integer first and the result truncated to uint8

    :param image: The RGB canvas (HxWx3, uint8), modified in place
    :type image: np.ndarray
    :param x1: One end of the span, inclusive
    :param x2: The other end of the span, inclusive; order does not matter
    :param y: Row index; rows outside the canvas are skipped
    :param r: Red channel of the color, [0, 255]
    :param g: Green channel of the color, [0, 255]
    :param b: Blue channel of the color, [0, 255]
    :param alpha: Opacity in [0, 1]
    """
    height, width = image.shape[0], image.shape[1]
    if y < 0 or y >= height:
        return
    if x1 > x2:
        x1, x2 = x2, x1
    ar = int(alpha * r)
    ag = int(alpha * g)
    ab = int(alpha * b)
    inv_alpha = 1.0 - alpha
    # pixels outside the row are skipped one by one
    for x in range(max(x1, 0), min(x2, width - 1) + 1):
        image[y, x, 0] = np.uint8(min(255, int(ar + inv_alpha * image[y, x, 0])))
        image[y, x, 1] = np.uint8(min(255, int(ag + inv_alpha * image[y, x, 1])))
        image[y, x, 2] = np.uint8(min(255, int(ab + inv_alpha * image[y, x, 2])))


@njit(fastmath=True)
def _draw_triangle_rgb(image: np.ndarray, record: np.ndarray):
    """
    Fills a triangle with a scanline edge walk

    Vertices must be sorted by y (A on top, C at the bottom). The long edge
    A-C is walked together with A-B down to B's row, then with B-C down to
    C's row. A zero-height A-B edge uses its horizontal delta as the slope,
    zero-height A-C and B-C edges use zero, so no division by zero happens

    :param image: The RGB canvas (HxWx3, uint8), modified in place
    :type image: np.ndarray
    :param record: Packed triangle record
    :type record: np.ndarray
    """
    ax = float(record[REC_COORDS + 0])
    ay = float(record[REC_COORDS + 1])
    bx = float(record[REC_COORDS + 2])
    by = float(record[REC_COORDS + 3])
    cx = float(record[REC_COORDS + 4])
    cy = float(record[REC_COORDS + 5])
    r, g, b = record[REC_R], record[REC_G], record[REC_B]
    alpha = np.float32(record[REC_OPACITY]) / np.float32(100.0)

    if by - ay > 0:
        dx1 = (bx - ax) / (by - ay)
    else:
        dx1 = bx - ax
    if cy - ay > 0:
        dx2 = (cx - ax) / (cy - ay)
    else:
        dx2 = 0.0
    if cy - by > 0:
        dx3 = (cx - bx) / (cy - by)
    else:
        dx3 = 0.0

    sx, sy = ax, ay
    ex = ax
    if dx1 > dx2:
        while sy <= by:
            _draw_hline_rgb(image, int(sx), int(ex), int(sy), r, g, b, alpha)
            sy += 1.0
            sx += dx2
            ex += dx1
        ex = bx
        while sy <= cy:
            _draw_hline_rgb(image, int(sx), int(ex), int(sy), r, g, b, alpha)
            sy += 1.0
            sx += dx2
            ex += dx3
    else:
        while sy <= by:
            _draw_hline_rgb(image, int(sx), int(ex), int(sy), r, g, b, alpha)
            sy += 1.0
            sx += dx1
            ex += dx2
        sx, sy = bx, by + 1.0
        while sy <= cy:
            _draw_hline_rgb(image, int(sx), int(ex), int(sy), r, g, b, alpha)
            sy += 1.0
            sx += dx3
            ex += dx2


@njit(fastmath=True)
def _draw_circle_rgb(image: np.ndarray, record: np.ndarray):
    """
    Fills a circle row by row between the two intersections of each scanline

    :param image: The RGB canvas (HxWx3, uint8), modified in place
    :type image: np.ndarray
    :param record: Packed circle record
    :type record: np.ndarray
    """
    xc = record[REC_COORDS + 0]
    yc = record[REC_COORDS + 1]
    radius = record[REC_COORDS + 2]
    r, g, b = record[REC_R], record[REC_G], record[REC_B]
    alpha = np.float32(record[REC_OPACITY]) / np.float32(100.0)

    for y in range(yc - radius, yc + radius + 1):
        dy = y - yc
        half_span = np.sqrt(np.float64(radius * radius - dy * dy))
        x1 = _round_half_away(xc + half_span)
        x2 = _round_half_away(xc - half_span)
        _draw_hline_rgb(image, x1, x2, y, r, g, b, alpha)


@njit(fastmath=True)
def _render_shapes_rgb(image: np.ndarray, records: np.ndarray):
    """
    Paints packed shape records onto a preexisting RGB canvas in storage order

    :param image: The RGB canvas (HxWx3, uint8), modified in place
    :type image: np.ndarray
    :param records: 2D int32 array, one packed shape per row
    :type records: np.ndarray
    """
    for i in range(records.shape[0]):
        kind = records[i, REC_KIND]
        if kind == TRIANGLE:
            _draw_triangle_rgb(image, records[i])
        elif kind == CIRCLE:
            _draw_circle_rgb(image, records[i])


def render(
    shape_set: ShapeSet,
    image_shape: Tuple[int, int],
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Renders the active shapes of a set onto a black RGB framebuffer

    :param shape_set: The shapes to draw
    :type shape_set: ShapeSet
    :param image_shape: Canvas size as (height, width)
    :type image_shape: Tuple[int, int]
    :param out: Optional framebuffer to reuse; it is cleared before drawing
    :type out: Optional[np.ndarray]
    :raises ValueError: If `out` does not match `image_shape`
    :return: The framebuffer (HxWx3, uint8)
    :rtype: np.ndarray
    """
    height, width = image_shape
    if out is None:
        out = np.zeros((height, width, 3), dtype=np.uint8)
    else:
        if out.shape != (height, width, 3) or out.dtype != np.uint8:
            raise ValueError(
                f"Framebuffer of shape {out.shape} and dtype {out.dtype} "
                f"does not match canvas {(height, width, 3)}"
            )
        out.fill(0)
    _render_shapes_rgb(out, shape_set.records())
    return out
