"""
Inheritance ordering of model instructions.

Models must be created after the models they extend. The edges "base -> derived" come
from each definition's `base` (or `options.base`); bases without a local definition
(built-in models such as `PersistedModel`) take part in the sort and are then dropped.
"""

from __future__ import annotations

import logging
from collections import deque
from graphlib import CycleError, TopologicalSorter
from typing import Dict, Iterable, List, Mapping, Optional

from loopline.exceptions import ModelCycleError
from .spec import ModelDefinition, ModelInstruction, SourceEntry

logger = logging.getLogger(__name__)


def get_base_model_name(definition: Optional[ModelDefinition]) -> Optional[str]:
    if definition is None:
        return None
    return definition.base_name


def add_all_base_models(registry: Mapping[str, SourceEntry], model_names: Iterable[str]) -> List[str]:
    """
    Expand `model_names` with every locally defined base model they (transitively) extend.

    Names keep their first-seen order; bases unknown to `registry` are not added.
    """
    queue = deque(model_names)
    result: List[str] = []
    visited: set[str] = set()

    while queue:
        name = queue.popleft()
        if name in visited:
            continue
        visited.add(name)
        result.append(name)

        entry = registry.get(name)
        if entry is None:
            continue

        base = get_base_model_name(entry.definition)
        # ignore built-in models like PersistedModel
        if base is None or base not in registry:
            continue
        queue.append(base)

    return result


def sort_by_inheritance(instructions: Iterable[ModelInstruction]) -> List[ModelInstruction]:
    """
    Order instructions so that every base precedes the models extending it.

    Raises ModelCycleError when `base` references form a cycle.
    """
    by_name: Dict[str, ModelInstruction] = {}
    sorter: TopologicalSorter[str] = TopologicalSorter()

    for inst in instructions:
        by_name[inst.name] = inst
        base = get_base_model_name(inst.definition)
        if base is None:
            sorter.add(inst.name)
        else:
            sorter.add(inst.name, base)

    try:
        sorted_names = list(sorter.static_order())
    except CycleError as e:
        cycle = [str(n) for n in e.args[1]] if len(e.args) > 1 else []
        raise ModelCycleError(cycle) from e

    ordered = [by_name[name] for name in sorted_names if name in by_name]
    logger.debug("Model inheritance order: %s", [inst.name for inst in ordered])
    return ordered
