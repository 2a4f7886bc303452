from __future__ import annotations

import argparse
from typing import Any, Tuple, Type, Union, cast, get_args, get_origin, Literal

from pydantic import BaseModel


def _is_optional(tp: Any) -> tuple[bool, Any]:
    origin = get_origin(tp)
    if origin is Union:
        args = tuple(a for a in get_args(tp))
        if len(args) == 2 and type(None) in args:
            other = args[0] if args[1] is type(None) else args[1]
            return True, other
    return False, tp


def _is_literal(tp: Any) -> tuple[bool, Tuple[Any, ...]]:
    if get_origin(tp) is Literal:
        return True, get_args(tp)
    return False, ()


def _python_type_for_argparse(tp: Any) -> type:
    # Pydantic validates anything richer (paths, enums) from strings.
    if tp in (str, int, float):
        return cast(type, tp)
    return str


def _is_positional(field: Any) -> bool:
    extra = field.json_schema_extra
    return isinstance(extra, dict) and bool(extra.get("positional"))


def add_model_to_parser(parser: argparse.ArgumentParser, model: Type[BaseModel]) -> None:
    """
    Add arguments for all fields of a Pydantic v2 model to an argparse parser.

    Fields marked with `json_schema_extra={"positional": True}` become positional
    arguments; all others become `--flag-name` options.
    Parsed values are intended to be passed to model.model_validate(vars(args)).
    """
    for name, field in model.model_fields.items():
        ann = field.annotation if field.annotation is not None else Any
        required = field.is_required()
        help_text = field.description or ""
        default = None if required else field.default

        _, inner_ann = _is_optional(ann)

        if _is_positional(field):
            parser.add_argument(
                name,
                type=_python_type_for_argparse(inner_ann),
                nargs=None if required else "?",
                default=default,
                help=help_text,
            )
            continue

        flag = f"--{name.replace('_', '-')}"

        if inner_ann is bool:
            # --flag / --no-flag
            parser.add_argument(
                flag,
                dest=name,
                action=argparse.BooleanOptionalAction,
                default=bool(field.default),
                help=help_text,
            )
            continue

        is_lit, choices = _is_literal(inner_ann)
        if is_lit:
            parser.add_argument(
                flag,
                dest=name,
                choices=list(choices),
                default=default,
                required=required,
                help=help_text,
            )
            continue

        if get_origin(inner_ann) is list:
            args = get_args(inner_ann)
            elem_type = _python_type_for_argparse(args[0] if args else str)
            parser.add_argument(
                flag,
                dest=name,
                nargs="*",
                type=elem_type,
                default=default,
                required=required,
                help=help_text,
            )
            continue

        parser.add_argument(
            flag,
            dest=name,
            type=_python_type_for_argparse(inner_ann),
            default=default,
            required=required,
            help=help_text,
        )
