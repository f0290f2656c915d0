"""End-to-end tests for the command line application."""

from __future__ import annotations

import json

import imageio.v3 as iio
import numpy as np

from app import main
from core.image_utils import load_image
from core.optimizers import Optimizer
from utils.shape_io import load_checkpoint


def _paths(tmp_path):
    image = tmp_path / "target.png"
    rng = np.random.default_rng(0)
    iio.imwrite(image, rng.integers(0, 256, size=(10, 12, 3), dtype=np.uint8))
    return str(image), str(tmp_path / "state.bin"), str(tmp_path / "out.svg")


def test_run_writes_all_outputs(tmp_path, capsys) -> None:
    image, checkpoint, svg = _paths(tmp_path)
    preview = str(tmp_path / "preview.png")
    status = main(
        [image, checkpoint, svg, "--generations", "150", "--seed", "5",
         "--use-circles", "1", "--preview", preview]
    )
    assert status == 0

    state, shapes = load_checkpoint(checkpoint, 64)
    assert state.generation == 150
    assert 1 <= len(shapes) <= state.active_budget
    with open(svg) as f:
        assert f.read().startswith("<?xml")
    assert load_image(preview).shape == (10, 12, 3)
    assert "Diff is" in capsys.readouterr().out


def test_run_resumes_from_checkpoint(tmp_path) -> None:
    image, checkpoint, svg = _paths(tmp_path)
    assert main([image, checkpoint, svg, "--generations", "120", "--seed", "1"]) == 0
    first_state, _ = load_checkpoint(checkpoint, 64)

    assert main([image, checkpoint, svg, "--generations", "30", "--seed", "2"]) == 0
    state, _ = load_checkpoint(checkpoint, 64)
    assert state.generation == 150
    assert state.best_known_diff <= first_state.best_known_diff
    assert state.temperature < first_state.temperature


def test_restart_ignores_checkpoint(tmp_path) -> None:
    image, checkpoint, svg = _paths(tmp_path)
    assert main([image, checkpoint, svg, "--generations", "120", "--seed", "1"]) == 0
    assert main([image, checkpoint, svg, "--generations", "30", "--restart"]) == 0
    state, _ = load_checkpoint(checkpoint, 64)
    assert state.generation == 30


def test_config_file_is_applied(tmp_path) -> None:
    image, checkpoint, svg = _paths(tmp_path)
    config = tmp_path / "run.json"
    config.write_text(json.dumps({"max_shapes": 3, "initial_shapes": 2, "seed": 4}))

    assert main([image, checkpoint, svg, "--generations", "20", "--config", str(config)]) == 0
    state, shapes = load_checkpoint(checkpoint, 3)
    assert state.capacity_cap == 3
    assert state.active_budget == 2
    assert 1 <= len(shapes) <= 2


def test_interrupt_saves_progress(tmp_path, monkeypatch, capsys) -> None:
    image, checkpoint, svg = _paths(tmp_path)
    original = Optimizer.run_one_generation
    calls = {"count": 0}

    def interrupting(self):
        calls["count"] += 1
        if calls["count"] == 5:
            raise KeyboardInterrupt
        return original(self)

    monkeypatch.setattr(Optimizer, "run_one_generation", interrupting)
    assert main([image, checkpoint, svg, "--seed", "9"]) == 0

    state, _ = load_checkpoint(checkpoint, 64)
    assert state.generation == 4
    assert "Interrupted" in capsys.readouterr().out


def test_missing_image_is_fatal(tmp_path, capsys) -> None:
    status = main(
        [str(tmp_path / "absent.png"), str(tmp_path / "state.bin"), str(tmp_path / "out.svg")]
    )
    assert status == 1
    assert "Error:" in capsys.readouterr().out
    assert not (tmp_path / "state.bin").exists()


def test_corrupt_checkpoint_is_fatal(tmp_path, capsys) -> None:
    image, checkpoint, svg = _paths(tmp_path)
    with open(checkpoint, "wb") as f:
        f.write(b"\x00\x01")
    assert main([image, checkpoint, svg, "--generations", "5"]) == 1
    assert "checkpoint" in capsys.readouterr().out


def test_invalid_config_is_fatal(tmp_path, capsys) -> None:
    image, checkpoint, svg = _paths(tmp_path)
    config = tmp_path / "run.json"
    config.write_text(json.dumps({"shapes": 3}))
    assert main([image, checkpoint, svg, "--config", str(config)]) == 1
    assert "Unknown option" in capsys.readouterr().out
