# src/loopline/__main__.py
from __future__ import annotations

import argparse

from loopline.cli.argparse_model import add_model_to_parser
from loopline.cli.plan import PlanCommand, handle_plan


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="loopline")
    sub = parser.add_subparsers(dest="command", required=True)

    plan_p = sub.add_parser("plan", help="Show the order in which models would be loaded.")
    add_model_to_parser(plan_p, PlanCommand)

    ns = parser.parse_args(argv)

    if ns.command == "plan":
        data = vars(ns)
        data.pop("command", None)
        cmd = PlanCommand.model_validate(data)
        handle_plan(cmd)
        return

    raise RuntimeError(f"Unknown command: {ns.command}")


if __name__ == "__main__":
    main()
