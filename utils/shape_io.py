import numpy as np
import os
import tempfile
from typing import List, Optional, Tuple, Union

from core.optimizers import EngineState
from core.shape_set import ShapeSet
from core.shapes import (
    REC_B,
    REC_COORDS,
    REC_KIND,
    REC_OPACITY,
    REC_R,
    RECORD_WIDTH,
    Circle,
    Shape,
    Triangle,
    shape_from_record,
)

# fixed little-endian checkpoint layout: state, set header, then the shapes
STATE_DTYPE = np.dtype(
    [
        ("capacity_cap", "<i4"),
        ("active_budget", "<i4"),
        ("temperature", "<f4"),
        ("best_known_diff", "<f4"),
        ("generation", "<i8"),
    ]
)
SET_DTYPE = np.dtype([("capacity", "<i4"), ("active_count", "<i4")])
SHAPE_DTYPE = np.dtype(
    [
        ("kind", "u1"),
        ("color", "u1", (3,)),
        ("opacity", "u1"),
        ("pad", "u1"),
        ("coords", "<i2", (RECORD_WIDTH - REC_COORDS,)),
    ]
)

SVG_HEADER = (
    '<?xml version="1.0" standalone="no"?>'
    '<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" '
    '"http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">'
    '<svg width="100%" height="100%" viewBox="0 0 {width} {height}" '
    'style="background-color:#000000;" version="1.1" '
    'xmlns="http://www.w3.org/2000/svg">\n'
)
SVG_FOOTER = "</svg>\n"


class CheckpointError(ValueError):
    """Raised when a checkpoint file is truncated or inconsistent"""


def _atomic_write(filepath: str, data: Union[bytes, str]):
    """
    Writes a file through a temporary sibling and an atomic rename, so a
    reader never sees a half-written file

    :raises OSError: If the file cannot be written
    """
    directory = os.path.dirname(os.path.abspath(filepath))
    os.makedirs(directory, exist_ok=True)
    mode = "wb" if isinstance(data, bytes) else "w"
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-")
    try:
        with os.fdopen(fd, mode) as f:
            f.write(data)
        os.replace(tmp_path, filepath)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def save_checkpoint(filepath: str, state: EngineState, shape_set: ShapeSet):
    """
    Saves the engine state and the active shapes of a set to a binary checkpoint

    :param filepath: Destination path
    :type filepath: str
    :param state: Engine state to store
    :type state: EngineState
    :param shape_set: The set to store, normally the absolute best
    :type shape_set: ShapeSet
    :raises OSError: If the file cannot be written
    """
    state_rec = np.zeros(1, dtype=STATE_DTYPE)
    state_rec["capacity_cap"] = state.capacity_cap
    state_rec["active_budget"] = state.active_budget
    state_rec["temperature"] = state.temperature
    state_rec["best_known_diff"] = state.best_known_diff
    state_rec["generation"] = state.generation

    set_rec = np.zeros(1, dtype=SET_DTYPE)
    set_rec["capacity"] = shape_set.capacity
    set_rec["active_count"] = shape_set.active_count

    records = shape_set.records()
    shape_recs = np.zeros(len(records), dtype=SHAPE_DTYPE)
    shape_recs["kind"] = records[:, REC_KIND]
    shape_recs["color"] = records[:, REC_R : REC_B + 1]
    shape_recs["opacity"] = records[:, REC_OPACITY]
    shape_recs["coords"] = records[:, REC_COORDS:]

    _atomic_write(
        filepath, state_rec.tobytes() + set_rec.tobytes() + shape_recs.tobytes()
    )


def _read_records(data: bytes, offset: int, dtype: np.dtype, count: int, what: str):
    needed = dtype.itemsize * count
    if len(data) - offset < needed:
        raise CheckpointError(
            f"Checkpoint truncated while reading {what}: "
            f"need {needed} bytes at offset {offset}, have {len(data) - offset}"
        )
    return np.frombuffer(data, dtype=dtype, count=count, offset=offset), offset + needed


def load_checkpoint(
    filepath: str, max_shapes: int
) -> Optional[Tuple[EngineState, List[Shape]]]:
    """
    Loads engine state and active shapes from a binary checkpoint

    A missing file is not an error and yields None, meaning a fresh start
    The configured `max_shapes` replaces the stored shape cap; the stored
    active budget is clamped to it

    :param filepath: Path of the checkpoint
    :type filepath: str
    :param max_shapes: Configured maximum number of shapes
    :type max_shapes: int
    :raises CheckpointError: If the file is truncated, holds more shapes than
                             `max_shapes` or contains an unknown shape kind
    :raises OSError: If the file exists but cannot be read
    :return: (state, active shapes) or None if the file does not exist
    :rtype: Optional[Tuple[EngineState, List[Shape]]]
    """
    if not os.path.exists(filepath):
        return None
    with open(filepath, "rb") as f:
        data = f.read()

    state_rec, offset = _read_records(data, 0, STATE_DTYPE, 1, "engine state")
    set_rec, offset = _read_records(data, offset, SET_DTYPE, 1, "shape set header")
    active_count = int(set_rec["active_count"][0])
    if active_count < 0:
        raise CheckpointError(f"Negative shape count in checkpoint: {active_count}")
    if active_count > max_shapes:
        raise CheckpointError(
            f"Can't load a checkpoint with {active_count} shapes, "
            f"the maximum is {max_shapes}"
        )
    shape_recs, _ = _read_records(data, offset, SHAPE_DTYPE, active_count, "shapes")

    shapes = []
    for rec in shape_recs:
        record = np.zeros(RECORD_WIDTH, dtype=np.int32)
        record[REC_KIND] = rec["kind"]
        record[REC_R : REC_B + 1] = rec["color"]
        record[REC_OPACITY] = rec["opacity"]
        record[REC_COORDS:] = rec["coords"]
        try:
            shapes.append(shape_from_record(record))
        except ValueError as e:
            raise CheckpointError(str(e)) from e

    state = EngineState(
        capacity_cap=max_shapes,
        active_budget=min(int(state_rec["active_budget"][0]), max_shapes),
        temperature=state_rec["temperature"][0],
        generation=int(state_rec["generation"][0]),
        best_known_diff=state_rec["best_known_diff"][0],
    )
    return state, shapes


def _svg_style(shape: Shape) -> str:
    r, g, b = (int(c) for c in shape.color)
    return (
        f"fill:#{r:02x}{g:02x}{b:02x};stroke:#000000;stroke-width:0;"
        f"fill-opacity:{shape.opacity / 100:.2f};"
    )


def shape_to_svg(shape: Shape) -> str:
    """
    Formats one shape as an SVG element

    :param shape: The shape to format
    :type shape: Shape
    :raises TypeError: If the shape is neither a Triangle nor a Circle
    :return: A single-line SVG element
    :rtype: str
    """
    if isinstance(shape, Triangle):
        points = " ".join(f"{int(x)},{int(y)}" for x, y in shape.vertices)
        return f'<polygon points="{points}" style="{_svg_style(shape)}"/>'
    if isinstance(shape, Circle):
        cx, cy = (int(c) for c in shape.center)
        return (
            f'<circle cx="{cx}" cy="{cy}" r="{shape.radius}" '
            f'style="{_svg_style(shape)}"/>'
        )
    raise TypeError(f"Cannot export shape of type {type(shape).__name__}")


def save_svg(filepath: str, shape_set: ShapeSet, image_shape: Tuple[int, int]):
    """
    Exports the active shapes of a set as an SVG document, in painter's order

    :param filepath: Destination path
    :type filepath: str
    :param shape_set: The set to export
    :type shape_set: ShapeSet
    :param image_shape: Canvas size as (height, width), used for the viewBox
    :type image_shape: Tuple[int, int]
    :raises OSError: If the file cannot be written
    """
    height, width = image_shape
    lines = [SVG_HEADER.format(width=width, height=height)]
    lines.extend(shape_to_svg(shape) + "\n" for shape in shape_set.active_shapes())
    lines.append(SVG_FOOTER)
    _atomic_write(filepath, "".join(lines))
