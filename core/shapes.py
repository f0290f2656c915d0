import numpy as np
from typing import Tuple

# shape kind tags, also used as the first column of a packed record
TRIANGLE = 0
CIRCLE = 1

# opacity is stored as an integer percentage, never fully opaque or transparent
MIN_OPACITY = 10
MAX_OPACITY = 90

# layout of a packed shape record (one int32 row per shape)
REC_KIND = 0
REC_R = 1
REC_G = 2
REC_B = 3
REC_OPACITY = 4
REC_COORDS = 5
RECORD_WIDTH = 11

# jitter amplitudes used by the geometry mutation operators
COARSE_JITTER = 20
FINE_JITTER = 5
COLOR_JITTER = 5


def _randbetween(rng: np.random.Generator, low: int, high: int, size=None):
    """
    Draws uniform integers from the closed interval [low, high]

    :param rng: Random generator to draw from
    :type rng: np.random.Generator
    :param low: Inclusive lower bound
    :type low: int
    :param high: Inclusive upper bound
    :type high: int
    :param size: Optional output shape, a scalar int is returned when omitted
    :return: A Python int, or an int64 array when `size` is given
    """
    if size is None:
        return int(rng.integers(low, high + 1))
    return rng.integers(low, high + 1, size=size)


class Shape:
    """
    Base class of the two drawable primitives, `Triangle` and `Circle`

    Holds the styling shared by both variants: an RGB fill color and an
    integer opacity percentage. Subclasses own their geometry and provide
    normalization, randomization, jitter and record packing for it
    """

    kind = -1

    def __init__(self, color, opacity: int):
        self.color = np.array(color, dtype=np.int32).reshape(3)
        self.opacity = int(opacity)

    def randomize_color(self, rng: np.random.Generator):
        """
        Replaces the fill color and opacity with fresh random values

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        """
        self.color = rng.integers(0, 256, size=3).astype(np.int32)
        self.opacity = _randbetween(rng, MIN_OPACITY, MAX_OPACITY)

    def jitter_color(self, rng: np.random.Generator, delta: int = COLOR_JITTER):
        """
        Moves each color channel by up to `delta`, clamped to [0, 255]

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        :param delta: Maximum absolute change per channel
        :type delta: int
        """
        jittered = self.color + _randbetween(rng, -delta, delta, size=3)
        self.color = np.clip(jittered, 0, 255).astype(np.int32)

    def mutate(self, rng: np.random.Generator, image_shape: Tuple[int, int]):
        """
        Applies one randomly chosen mutation operator to this shape

        The six operators are equally likely: full geometry re-randomization,
        coarse geometry jitter, fine geometry jitter, full color
        re-randomization, small color jitter and opacity re-randomization
        Geometry operators re-normalize the shape afterwards

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        :param image_shape: Canvas size as (height, width)
        :type image_shape: Tuple[int, int]
        """
        choice = int(rng.integers(6))
        if choice == 0:
            self.randomize_geometry(rng, image_shape)
            self.normalize(image_shape)
        elif choice == 1:
            self.jitter_geometry(rng, COARSE_JITTER)
            self.normalize(image_shape)
        elif choice == 2:
            self.jitter_geometry(rng, FINE_JITTER)
            self.normalize(image_shape)
        elif choice == 3:
            self.color = rng.integers(0, 256, size=3).astype(np.int32)
        elif choice == 4:
            self.jitter_color(rng)
        else:
            self.opacity = _randbetween(rng, MIN_OPACITY, MAX_OPACITY)

    def to_record(self) -> np.ndarray:
        """
        Packs the shape into a single int32 row of length `RECORD_WIDTH`

        Columns are kind, r, g, b, opacity followed by six geometry slots
        Triangles fill all six with x1, y1, x2, y2, x3, y3; circles use the
        first three for cx, cy, radius and leave the rest at zero

        :return: The packed record
        :rtype: np.ndarray
        """
        record = np.zeros(RECORD_WIDTH, dtype=np.int32)
        record[REC_KIND] = self.kind
        record[REC_R : REC_B + 1] = self.color
        record[REC_OPACITY] = self.opacity
        coords = self.geometry()
        record[REC_COORDS : REC_COORDS + len(coords)] = coords
        return record

    def geometry(self) -> np.ndarray:
        raise NotImplementedError

    def randomize_geometry(self, rng, image_shape):
        raise NotImplementedError

    def jitter_geometry(self, rng, delta):
        raise NotImplementedError

    def normalize(self, image_shape):
        raise NotImplementedError

    def copy(self) -> "Shape":
        raise NotImplementedError

    def __eq__(self, other) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return np.array_equal(self.to_record(), other.to_record())

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(color={self.color.tolist()}, "
            f"opacity={self.opacity}, geometry={self.geometry().tolist()})"
        )


class Triangle(Shape):
    """
    Filled triangle given by three integer (x, y) vertices

    After `normalize` the vertices are sorted by y, which the scanline
    rasterizer relies on
    """

    kind = TRIANGLE

    def __init__(self, color, opacity: int, vertices):
        super().__init__(color, opacity)
        self.vertices = np.array(vertices, dtype=np.int32).reshape(3, 2)

    def geometry(self) -> np.ndarray:
        return self.vertices.reshape(6)

    def randomize_geometry(self, rng, image_shape):
        height, width = image_shape
        self.vertices = rng.integers(0, (width, height), size=(3, 2)).astype(np.int32)

    def jitter_geometry(self, rng, delta):
        self.vertices = self.vertices + _randbetween(
            rng, -delta, delta, size=(3, 2)
        ).astype(np.int32)

    def normalize(self, image_shape: Tuple[int, int]):
        """
        Sorts vertices by y (x travels with its y) and clamps them to the canvas

        The sort is a bubble pass over the two adjacent pairs, repeated until
        no swap happens; each coordinate is then clamped on its own

        :param image_shape: Canvas size as (height, width)
        :type image_shape: Tuple[int, int]
        """
        height, width = image_shape
        v = self.vertices
        swapped = True
        while swapped:
            swapped = False
            for i in (0, 1):
                if v[i, 1] > v[i + 1, 1]:
                    v[[i, i + 1]] = v[[i + 1, i]]
                    swapped = True
        v[:, 0] = np.clip(v[:, 0], 0, width - 1)
        v[:, 1] = np.clip(v[:, 1], 0, height - 1)

    def copy(self) -> "Triangle":
        return Triangle(self.color, self.opacity, self.vertices)


class Circle(Shape):
    """Filled circle given by an integer center and a non-negative radius"""

    kind = CIRCLE

    def __init__(self, color, opacity: int, center, radius: int):
        super().__init__(color, opacity)
        self.center = np.array(center, dtype=np.int32).reshape(2)
        self.radius = int(radius)

    def geometry(self) -> np.ndarray:
        return np.array([self.center[0], self.center[1], self.radius], dtype=np.int32)

    def randomize_geometry(self, rng, image_shape):
        height, width = image_shape
        self.center = rng.integers(0, (width, height)).astype(np.int32)
        self.radius = int(rng.integers(0, width))

    def jitter_geometry(self, rng, delta):
        moves = _randbetween(rng, -delta, delta, size=3)
        self.center = (self.center + moves[:2]).astype(np.int32)
        self.radius += int(moves[2])

    def normalize(self, image_shape: Tuple[int, int]):
        """
        Clamps the center to the canvas, then shrinks the radius until the
        whole disc fits; the radius never grows

        :param image_shape: Canvas size as (height, width)
        :type image_shape: Tuple[int, int]
        """
        height, width = image_shape
        cx = min(max(int(self.center[0]), 0), width - 1)
        cy = min(max(int(self.center[1]), 0), height - 1)
        self.center = np.array([cx, cy], dtype=np.int32)
        # largest radius <= the current one with cx-r >= 0, cx+r < width, etc
        fitting = min(cx, width - 1 - cx, cy, height - 1 - cy)
        self.radius = max(0, min(self.radius, fitting))

    def copy(self) -> "Circle":
        return Circle(self.color, self.opacity, self.center, self.radius)


def select_shape_kind(
    rng: np.random.Generator, use_triangles: bool = True, use_circles: bool = False
) -> int:
    """
    Picks the kind of a new shape from the enabled kinds

    Both enabled gives a fair coin, circles alone gives circles, anything
    else falls back to triangles

    :param rng: Random generator to draw from
    :type rng: np.random.Generator
    :param use_triangles: Whether triangles are enabled
    :type use_triangles: bool
    :param use_circles: Whether circles are enabled
    :type use_circles: bool
    :return: `TRIANGLE` or `CIRCLE`
    :rtype: int
    """
    if use_circles and use_triangles:
        return TRIANGLE if rng.integers(2) == 1 else CIRCLE
    if use_circles:
        return CIRCLE
    return TRIANGLE


def _blank_shape(kind: int) -> Shape:
    if kind == TRIANGLE:
        return Triangle((0, 0, 0), MIN_OPACITY, np.zeros((3, 2), dtype=np.int32))
    return Circle((0, 0, 0), MIN_OPACITY, (0, 0), 0)


def create_random(
    rng: np.random.Generator,
    image_shape: Tuple[int, int],
    use_triangles: bool = True,
    use_circles: bool = False,
) -> Shape:
    """
    Creates a shape with geometry spread uniformly over the whole canvas

    :param rng: Random generator to draw from
    :type rng: np.random.Generator
    :param image_shape: Canvas size as (height, width)
    :type image_shape: Tuple[int, int]
    :param use_triangles: Whether triangles may be produced
    :type use_triangles: bool
    :param use_circles: Whether circles may be produced
    :type use_circles: bool
    :return: A normalized random shape
    :rtype: Shape
    """
    shape = _blank_shape(select_shape_kind(rng, use_triangles, use_circles))
    shape.randomize_geometry(rng, image_shape)
    shape.randomize_color(rng)
    shape.normalize(image_shape)
    return shape


def create_random_local(
    rng: np.random.Generator,
    image_shape: Tuple[int, int],
    spread: int,
    use_triangles: bool = True,
    use_circles: bool = False,
) -> Shape:
    """
    Creates a small shape clustered around one random anchor point

    Triangle vertices are offset from the anchor by up to `spread` pixels on
    each axis; a circle is centered on the anchor with a radius in [1, spread]

    :param rng: Random generator to draw from
    :type rng: np.random.Generator
    :param image_shape: Canvas size as (height, width)
    :type image_shape: Tuple[int, int]
    :param spread: Maximum distance of the geometry from the anchor
    :type spread: int
    :param use_triangles: Whether triangles may be produced
    :type use_triangles: bool
    :param use_circles: Whether circles may be produced
    :type use_circles: bool
    :return: A normalized random shape
    :rtype: Shape
    """
    height, width = image_shape
    anchor = rng.integers(0, (width, height))
    kind = select_shape_kind(rng, use_triangles, use_circles)
    if kind == TRIANGLE:
        offsets = _randbetween(rng, -spread, spread, size=(3, 2))
        shape = Triangle((0, 0, 0), MIN_OPACITY, anchor + offsets)
    else:
        shape = Circle((0, 0, 0), MIN_OPACITY, anchor, _randbetween(rng, 1, spread))
    shape.randomize_color(rng)
    shape.normalize(image_shape)
    return shape


def shape_from_record(record: np.ndarray) -> Shape:
    """
    Rebuilds a shape from a packed record produced by `Shape.to_record`

    :param record: Sequence of `RECORD_WIDTH` integers
    :type record: np.ndarray
    :raises ValueError: If the kind column holds an unknown tag
    :return: The decoded shape
    :rtype: Shape
    """
    kind = int(record[REC_KIND])
    color = [int(c) for c in record[REC_R : REC_B + 1]]
    opacity = int(record[REC_OPACITY])
    coords = [int(c) for c in record[REC_COORDS:RECORD_WIDTH]]
    if kind == TRIANGLE:
        return Triangle(color, opacity, np.array(coords).reshape(3, 2))
    if kind == CIRCLE:
        return Circle(color, opacity, coords[:2], coords[2])
    raise ValueError(f"Unknown shape kind in record: {kind}")
