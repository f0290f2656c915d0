import numpy as np
from typing import List, Optional, Sequence, Tuple

from core.shapes import (
    RECORD_WIDTH,
    Shape,
    create_random,
    create_random_local,
)

# spread of a newly grown shape, None meaning spread over the whole canvas
# each entry is equally likely
GROW_SPREADS = (None, 5, 10, 25, 2)

# per-generation structural edit odds, "1 in N"
GROW_ODDS = 10
SHRINK_ODDS = 20
SWAP_ODDS = 20


class ShapeSet:
    """
    Ordered, fixed-capacity collection of shapes forming one candidate image

    `shapes` always holds exactly `capacity` slots; only the first
    `active_count` are drawn, in storage order, so later shapes paint over
    earlier ones. The remaining slots are latent storage reused when the set
    grows
    """

    def __init__(
        self,
        shapes: Sequence[Shape],
        active_count: int,
        use_triangles: bool = True,
        use_circles: bool = False,
    ):
        """
        Initializes the ShapeSet

        :param shapes: Initial slot contents; its length fixes the capacity
        :type shapes: Sequence[Shape]
        :param active_count: Number of leading slots taking part in rendering
        :type active_count: int
        :param use_triangles: Whether grown shapes may be triangles
        :type use_triangles: bool
        :param use_circles: Whether grown shapes may be circles
        :type use_circles: bool
        :raises ValueError: If `active_count` is outside [0, capacity]
        """
        self.shapes: List[Shape] = list(shapes)
        self.capacity = len(self.shapes)
        if not 0 <= active_count <= self.capacity:
            raise ValueError(
                f"active_count {active_count} outside [0, {self.capacity}]"
            )
        self.active_count = int(active_count)
        self.use_triangles = use_triangles
        self.use_circles = use_circles

    @classmethod
    def initialize_random(
        cls,
        rng: np.random.Generator,
        capacity: int,
        image_shape: Tuple[int, int],
        initial_active: int = 1,
        use_triangles: bool = True,
        use_circles: bool = False,
    ) -> "ShapeSet":
        """
        Creates a set whose every slot, active or latent, holds a random shape

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        :param capacity: Number of slots
        :type capacity: int
        :param image_shape: Canvas size as (height, width)
        :type image_shape: Tuple[int, int]
        :param initial_active: Number of slots active from the start
        :type initial_active: int
        :param use_triangles: Whether triangles are enabled
        :type use_triangles: bool
        :param use_circles: Whether circles are enabled
        :type use_circles: bool
        :return: The new set
        :rtype: ShapeSet
        """
        shapes = [
            create_random(rng, image_shape, use_triangles, use_circles)
            for _ in range(capacity)
        ]
        return cls(shapes, initial_active, use_triangles, use_circles)

    @classmethod
    def from_shapes(
        cls,
        active_shapes: Sequence[Shape],
        capacity: int,
        rng: np.random.Generator,
        image_shape: Tuple[int, int],
        use_triangles: bool = True,
        use_circles: bool = False,
    ) -> "ShapeSet":
        """
        Builds a set from known active shapes, padding latent slots with random ones

        :raises ValueError: If there are more shapes than `capacity`
        """
        if len(active_shapes) > capacity:
            raise ValueError(
                f"{len(active_shapes)} shapes do not fit a capacity of {capacity}"
            )
        shapes = [shape.copy() for shape in active_shapes]
        shapes.extend(
            create_random(rng, image_shape, use_triangles, use_circles)
            for _ in range(capacity - len(shapes))
        )
        return cls(shapes, len(active_shapes), use_triangles, use_circles)

    def __len__(self) -> int:
        return self.active_count

    def active_shapes(self) -> List[Shape]:
        return self.shapes[: self.active_count]

    def copy(self) -> "ShapeSet":
        """Returns an independent deep copy of all slots"""
        return ShapeSet(
            [shape.copy() for shape in self.shapes],
            self.active_count,
            self.use_triangles,
            self.use_circles,
        )

    def clone_into(self, dest: "ShapeSet"):
        """
        Copies the active shapes and the active count into an existing set

        Latent slots of `dest` past the active prefix are left as they are

        :param dest: Destination set, reused across generations
        :type dest: ShapeSet
        :raises ValueError: If `dest` has a smaller capacity than this set
        """
        if dest.capacity < self.capacity:
            raise ValueError(
                f"Destination capacity {dest.capacity} smaller than {self.capacity}"
            )
        for i in range(self.active_count):
            dest.shapes[i] = self.shapes[i].copy()
        dest.active_count = self.active_count

    def grow(
        self,
        rng: np.random.Generator,
        image_shape: Tuple[int, int],
        limit: Optional[int] = None,
    ) -> bool:
        """
        Activates one more slot, filling it with a new random shape

        The new shape is either spread over the whole canvas or clustered
        with one of the spreads in `GROW_SPREADS`, all equally likely

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        :param image_shape: Canvas size as (height, width)
        :type image_shape: Tuple[int, int]
        :param limit: Optional ceiling on the active count below the capacity
        :type limit: Optional[int]
        :return: True if a shape was added
        :rtype: bool
        """
        if self.active_count >= self.capacity:
            return False
        if limit is not None and self.active_count >= limit:
            return False
        spread = GROW_SPREADS[int(rng.integers(len(GROW_SPREADS)))]
        if spread is None:
            shape = create_random(
                rng, image_shape, self.use_triangles, self.use_circles
            )
        else:
            shape = create_random_local(
                rng, image_shape, spread, self.use_triangles, self.use_circles
            )
        self.shapes[self.active_count] = shape
        self.active_count += 1
        return True

    def shrink(self, rng: np.random.Generator) -> bool:
        """
        Removes one random active shape, keeping the order of the others

        The removed object moves to the end of the slot list as latent storage
        A set is never shrunk below one active shape

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        :return: True if a shape was removed
        :rtype: bool
        """
        if self.active_count <= 1:
            return False
        index = int(rng.integers(self.active_count))
        self.shapes.append(self.shapes.pop(index))
        self.active_count -= 1
        return True

    def swap_two(self, rng: np.random.Generator) -> bool:
        if self.active_count < 2:
            return False
        a, b = rng.choice(self.active_count, size=2, replace=False)
        self.shapes[a], self.shapes[b] = self.shapes[b], self.shapes[a]
        return True

    def mutate_batch(
        self,
        rng: np.random.Generator,
        image_shape: Tuple[int, int],
        trials: int,
        mutation_rate: int,
    ):
        """
        Runs `trials` independent mutation draws over the active shapes

        Each draw picks an active index uniformly and mutates that shape with
        probability `mutation_rate / 1000`. The same shape may be picked, and
        mutated, more than once in a batch

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        :param image_shape: Canvas size as (height, width)
        :type image_shape: Tuple[int, int]
        :param trials: Number of draws
        :type trials: int
        :param mutation_rate: Mutation chance per draw, in thousandths
        :type mutation_rate: int
        """
        if self.active_count == 0:
            return
        for _ in range(trials):
            shape = self.shapes[int(rng.integers(self.active_count))]
            if rng.integers(1000) < mutation_rate:
                shape.mutate(rng, image_shape)

    def apply_edit_policy(
        self,
        rng: np.random.Generator,
        image_shape: Tuple[int, int],
        budget: Optional[int] = None,
    ) -> Optional[str]:
        """
        Applies at most one structural edit, tried in the order grow, shrink, swap

        Each edit has its own coin; an edit whose coin comes up but which
        cannot be applied (set full, single shape left) falls through to the
        next check

        :param rng: Random generator to draw from
        :type rng: np.random.Generator
        :param image_shape: Canvas size as (height, width)
        :type image_shape: Tuple[int, int]
        :param budget: Current ceiling on active shapes for growth
        :type budget: Optional[int]
        :return: "grow", "shrink", "swap" or None when nothing changed
        :rtype: Optional[str]
        """
        if rng.integers(GROW_ODDS) == 0 and self.grow(rng, image_shape, budget):
            return "grow"
        if rng.integers(SHRINK_ODDS) == 0 and self.shrink(rng):
            return "shrink"
        if rng.integers(SWAP_ODDS) == 0 and self.swap_two(rng):
            return "swap"
        return None

    def records(self) -> np.ndarray:
        """
        Packs the active shapes into a C-contiguous int32 array for the rasterizer

        :return: Array of shape (active_count, RECORD_WIDTH)
        :rtype: np.ndarray
        """
        records = np.zeros((self.active_count, RECORD_WIDTH), dtype=np.int32)
        for i in range(self.active_count):
            records[i] = self.shapes[i].to_record()
        return records
