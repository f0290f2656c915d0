"""Tests for command line parsing."""

from __future__ import annotations

import pytest

from cli.parser import parse_arguments

POSITIONALS = ["target.png", "state.bin", "out.svg"]


def test_positionals_and_unset_options() -> None:
    args = parse_arguments(POSITIONALS)
    assert (args.image, args.checkpoint, args.svg) == tuple(POSITIONALS)
    # unset options stay None so a JSON config can supply them
    assert args.max_shapes is None
    assert args.use_circles is None
    assert args.restart is None
    assert args.generations is None
    assert args.preview is None


def test_explicit_options() -> None:
    args = parse_arguments(
        POSITIONALS
        + [
            "--use-circles", "1",
            "--max-shapes", "10",
            "--initial-shapes", "3",
            "--mutation-rate", "500",
            "--restart",
            "--seed", "3",
            "--generations", "5",
            "--preview", "preview.png",
        ]
    )
    assert args.use_circles == 1
    assert args.max_shapes == 10
    assert args.initial_shapes == 3
    assert args.mutation_rate == 500
    assert args.restart is True
    assert args.seed == 3
    assert args.generations == 5
    assert args.preview == "preview.png"


@pytest.mark.parametrize(
    "extra",
    [
        ["--use-triangles", "2"],
        ["--max-shapes", "0"],
        ["--initial-shapes", "-1"],
        ["--generations", "0"],
        ["--unknown-flag"],
    ],
)
def test_invalid_arguments_exit(extra) -> None:
    with pytest.raises(SystemExit) as excinfo:
        parse_arguments(POSITIONALS + extra)
    assert excinfo.value.code == 2


def test_missing_positionals_exit() -> None:
    with pytest.raises(SystemExit):
        parse_arguments(["target.png"])


def test_warnings_for_suspicious_values(capsys) -> None:
    parse_arguments(
        POSITIONALS
        + ["--use-triangles", "0", "--use-circles", "0", "--mutation-rate", "5000"]
    )
    out = capsys.readouterr().out
    assert "Both shape kinds disabled" in out
    assert "clamped" in out
