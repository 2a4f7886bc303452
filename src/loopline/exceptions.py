from __future__ import annotations


class LooplineError(Exception):
    pass


class LooplineRuntimeError(RuntimeError):
    pass


class ModelLoadError(LooplineRuntimeError):
    """Raised when the model graph cannot be ordered or materialized."""


class UnknownModelError(ModelLoadError):
    """Raised when a configuration-only instruction names a model that does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Cannot configure unknown model {name}")
        self.name = name


class ModelCycleError(ModelLoadError):
    """Raised when `base` references form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__("Cyclic model inheritance: " + " -> ".join(cycle))
        self.cycle = cycle


class ModelNotFoundError(LooplineRuntimeError, LookupError):
    """Raised when a model cannot be found by name."""


class ModelNotAttachedError(LooplineRuntimeError):
    """Raised when a persistence operation runs on a model without a data source."""


class DataSourceError(LooplineRuntimeError):
    """Raised when a data source cannot be created or used."""


class DataSourceNotFoundError(DataSourceError, LookupError):
    """Raised when a model references a data source name that is not configured."""
