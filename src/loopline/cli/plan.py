from __future__ import annotations

import argparse
import sys
from typing import Literal, Optional, TextIO

from pydantic import BaseModel, Field

from loopline.cli.argparse_model import add_model_to_parser
from loopline.model.spec import LoadPlan

LogLevel = Literal[
    "CRITICAL",
    "ERROR",
    "WARNING",
    "INFO",
    "DEBUG",
    "critical",
    "error",
    "warning",
    "info",
    "debug",
]


class PlanCommand(BaseModel):
    root: str = Field(..., description="Project root directory.", json_schema_extra={"positional": True})
    sources: Optional[list[str]] = Field(None, description="Model source directories (default from config).")
    data_source: Optional[str] = Field(None, description="Default data source name.")
    config_file: Optional[str] = Field(None, description="Optional loopline config file (toml/yaml).")
    loglevel: Optional[LogLevel] = Field(None, description="Logging level override.")


def format_plan(plan: LoadPlan) -> list[str]:
    lines: list[str] = []
    for inst in plan.models:
        base = inst.base_name or "-"
        if not inst.has_config:
            attach = "(not attached)"
        elif isinstance(inst.config, dict):
            attach = str(inst.config.get("dataSource"))
        else:
            attach = str(inst.config)
        script = str(inst.source_file) if inst.source_file else "-"
        kind = "define" if inst.definition is not None else "existing"
        lines.append(f"{inst.name}\t{kind}\tbase={base}\tdataSource={attach}\tscript={script}")
    for m in plan.mixins:
        lines.append(f"mixin {m.name}\t{m.source_file or '(inline)'}")
    return lines


def handle_plan(command: PlanCommand, *, out: TextIO | None = None) -> None:
    from loopline.config import get_settings
    from loopline.logging_config import configure_logging
    from loopline.model.loader import plan_models

    overrides: dict[str, object] = {}
    if command.loglevel is not None:
        overrides["logging"] = {"level": command.loglevel.upper()}

    settings = get_settings(config_file=command.config_file, **overrides)
    configure_logging(settings.logging)

    options: dict[str, object] = {}
    if command.sources:
        options["sources"] = command.sources
    if command.data_source:
        options["dataSource"] = command.data_source

    plan = plan_models(command.root, options, settings=settings)

    out = out or sys.stdout
    for line in format_plan(plan):
        print(line, file=out)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="loopline-plan")
    add_model_to_parser(parser, PlanCommand)
    ns = parser.parse_args(argv)
    cmd = PlanCommand.model_validate(vars(ns))
    handle_plan(cmd)
