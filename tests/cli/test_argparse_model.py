from __future__ import annotations

import argparse
from typing import Literal, Optional

import pytest
from pydantic import BaseModel, Field

from loopline.cli.argparse_model import add_model_to_parser


class DemoModel(BaseModel):
    target: str = Field(..., description="Positional target", json_schema_extra={"positional": True})
    name: str = Field(..., description="Required name")
    count: int = Field(3, description="Optional count")
    ratio: Optional[float] = Field(None, description="Optional ratio")
    verbose: bool = Field(False, description="Enable verbose mode")
    mode: Literal["fast", "slow"] = Field("fast", description="Execution mode")
    tags: Optional[list[str]] = Field(None, description="Tags")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser()
    add_model_to_parser(parser, DemoModel)
    return parser


def test_add_model_to_parser_parses_all_field_kinds() -> None:
    ns = _parser().parse_args(
        ["here", "--name", "n1", "--count", "5", "--ratio", "0.5", "--verbose", "--mode", "slow", "--tags", "a", "b"]
    )
    m = DemoModel.model_validate(vars(ns))

    assert m.target == "here"
    assert m.name == "n1"
    assert m.count == 5
    assert m.ratio == 0.5
    assert m.verbose is True
    assert m.mode == "slow"
    assert m.tags == ["a", "b"]


def test_add_model_to_parser_defaults() -> None:
    m = DemoModel.model_validate(vars(_parser().parse_args(["here", "--name", "n1"])))

    assert m.count == 3
    assert m.ratio is None
    assert m.verbose is False
    assert m.mode == "fast"
    assert m.tags is None


def test_add_model_to_parser_no_flag_for_bool() -> None:
    ns = _parser().parse_args(["here", "--name", "n1", "--no-verbose"])
    assert ns.verbose is False


@pytest.mark.parametrize(
    "argv",
    [
        ["--name", "n1"],  # missing positional
        ["here"],  # missing required option
        ["here", "--name", "n1", "--mode", "medium"],  # invalid literal
    ],
)
def test_add_model_to_parser_rejects_bad_input(argv: list[str]) -> None:
    with pytest.raises(SystemExit):
        _parser().parse_args(argv)
