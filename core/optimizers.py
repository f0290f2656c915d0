import numpy as np
from dataclasses import dataclass
from typing import Generator, NamedTuple, Optional

from core.metrics import score
from core.rasterizer import render
from core.shape_set import ShapeSet

INITIAL_TEMPERATURE = 0.10
TEMPERATURE_STEP = 0.00001
# generations between two temperature steps
COOLING_INTERVAL = 10
# generations between two checks for unlocking one more shape
GROWTH_INTERVAL = 1000
# generations between two exports of the absolute best set
EXPORT_INTERVAL = 100
# mutation draws per generation
MUTATION_TRIALS = 10
# the worst possible score, used before anything has been measured
WORST_DIFF = 100.0


@dataclass
class EngineState:
    """
    Run-wide search state, saved to and restored from checkpoints

    `temperature` and `best_known_diff` are kept as float32 so they survive
    a checkpoint round trip unchanged
    """

    capacity_cap: int
    active_budget: int = 1
    temperature: np.float32 = np.float32(INITIAL_TEMPERATURE)
    generation: int = 0
    best_known_diff: np.float32 = np.float32(WORST_DIFF)

    def __post_init__(self):
        self.temperature = np.float32(self.temperature)
        self.best_known_diff = np.float32(self.best_known_diff)

    def advance(self):
        """Counts one generation and cools down every `COOLING_INTERVAL` of them"""
        self.generation += 1
        if self.temperature > 0 and self.generation % COOLING_INTERVAL == 0:
            self.temperature = np.float32(
                max(0.0, float(self.temperature) - TEMPERATURE_STEP)
            )

    def maybe_raise_budget(self, active_count: int) -> bool:
        """
        Unlocks room for one more shape every `GROWTH_INTERVAL` generations

        The budget only grows once the current best uses nearly all of it,
        and never past `capacity_cap`

        :param active_count: Active shapes in the current best set
        :type active_count: int
        :return: True if the budget was raised
        :rtype: bool
        """
        if self.generation % GROWTH_INTERVAL != 0:
            return False
        if self.active_budget < self.capacity_cap and active_count >= self.active_budget - 1:
            self.active_budget += 1
            return True
        return False


class GenerationResult(NamedTuple):
    generation: int
    accepted: bool
    new_best: bool
    diff: float
    edit: Optional[str]


def should_accept(
    candidate_diff: float,
    current_best_diff: float,
    best_known_diff: float,
    temperature: float,
    draw: float,
) -> bool:
    """
    Simulated annealing acceptance rule

    A strictly better candidate is always accepted. A worse one is accepted
    when the temperature is positive, the uniform `draw` falls below it and
    the candidate is less than `2 * temperature` worse than the best score
    ever seen (not the current one)

    :param candidate_diff: Score of the mutated candidate
    :type candidate_diff: float
    :param current_best_diff: Score of the current best set
    :type current_best_diff: float
    :param best_known_diff: Lowest score seen during the run
    :type best_known_diff: float
    :param temperature: Current temperature
    :type temperature: float
    :param draw: Uniform random number in [0, 1)
    :type draw: float
    :return: True if the candidate replaces the current best
    :rtype: bool
    """
    if candidate_diff < current_best_diff:
        return True
    return (
        temperature > 0
        and draw < temperature
        and (candidate_diff - best_known_diff) < 2 * temperature
    )


class Optimizer:
    """
    Single-trajectory simulated annealing over a ShapeSet

    Each generation clones the current best into a scratch candidate, applies
    one structural edit and a batch of shape mutations, renders and scores the
    candidate, then decides whether it replaces the current best. The lowest
    scoring set ever accepted is kept apart as `absolute_best`
    """

    def __init__(
        self,
        target: np.ndarray,
        best: ShapeSet,
        state: EngineState,
        rng: Optional[np.random.Generator] = None,
        mutation_rate: int = 200,
        stop_flag: Optional[np.ndarray] = None,
    ):
        """
        Initializes the Optimizer

        :param target: Target RGB image (HxWx3, uint8)
        :type target: np.ndarray
        :param best: Starting set; the optimizer takes ownership of it
        :type best: ShapeSet
        :param state: Search state, updated in place
        :type state: EngineState
        :param rng: Random generator, a fresh unseeded one when omitted
        :type rng: Optional[np.random.Generator]
        :param mutation_rate: Mutation chance per draw, in thousandths
        :type mutation_rate: int
        :param stop_flag: 1-element array; setting it to 1 ends `run`
        :type stop_flag: Optional[np.ndarray]
        :raises ValueError: If the target is not an HxWx3 uint8 image
        """
        if target.ndim != 3 or target.shape[2] != 3 or target.dtype != np.uint8:
            raise ValueError(
                f"Target must be an HxWx3 uint8 image, got {target.shape} {target.dtype}"
            )
        self.target = target
        self.image_shape = target.shape[:2]
        self.state = state
        self.rng = rng if rng is not None else np.random.default_rng()
        self.mutation_rate = mutation_rate
        self.stop_flag = (
            stop_flag if stop_flag is not None else np.array([0], dtype=np.int8)
        )

        self.best = best
        self.absolute_best = best.copy()
        self.candidate = best.copy()
        self.current_best_diff = np.float32(WORST_DIFF)

        height, width = self.image_shape
        self._frame = np.zeros((height, width, 3), dtype=np.uint8)
        # framebuffer of the last accepted candidate, for live previews
        self.last_frame = render(self.best, self.image_shape)

    def run_one_generation(self) -> GenerationResult:
        """
        Runs one full generation of the search

        :return: What happened during the generation
        :rtype: GenerationResult
        """
        state = self.state
        state.advance()
        state.maybe_raise_budget(self.best.active_count)

        self.best.clone_into(self.candidate)
        edit = self.candidate.apply_edit_policy(
            self.rng, self.image_shape, state.active_budget
        )
        self.candidate.mutate_batch(
            self.rng, self.image_shape, MUTATION_TRIALS, self.mutation_rate
        )

        render(self.candidate, self.image_shape, out=self._frame)
        diff = np.float32(score(self._frame, self.target))

        accepted = should_accept(
            diff,
            self.current_best_diff,
            state.best_known_diff,
            state.temperature,
            self.rng.random(),
        )
        new_best = False
        if accepted:
            # the old best becomes next generation's scratch candidate
            self.best, self.candidate = self.candidate, self.best
            self._frame, self.last_frame = self.last_frame, self._frame
            self.current_best_diff = diff
            if diff < state.best_known_diff:
                self.best.clone_into(self.absolute_best)
                state.best_known_diff = diff
                new_best = True

        return GenerationResult(state.generation, accepted, new_best, float(diff), edit)

    def run(
        self, generations: Optional[int] = None
    ) -> Generator[GenerationResult, None, None]:
        """
        Runs the search, yielding the result of every generation

        There is no convergence criterion: without `generations` the loop
        only ends when `stop_flag[0]` is set to 1 or the consumer stops
        iterating

        :param generations: Optional number of generations to run
        :type generations: Optional[int]
        :return: A generator of per-generation results
        :rtype: Generator[GenerationResult, None, None]
        """
        done = 0
        while generations is None or done < generations:
            if self.stop_flag[0] == 1:
                break
            yield self.run_one_generation()
            done += 1
