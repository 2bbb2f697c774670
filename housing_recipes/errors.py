"""Exception hierarchy raised by recipe definition, fitting, and application."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all recipe errors."""


class SchemaError(PipelineError):
    """A required column is missing or a role assignment is invalid."""


class UnresolvedSelectorError(SchemaError):
    """A step selector matched no columns in the working schema."""

    def __init__(self, step_name: str, selector: object) -> None:
        super().__init__(f"Selector {selector!r} for step '{step_name}' matched no columns")
        self.step_name = step_name
        self.selector = selector


class FitError(PipelineError):
    """A step could not estimate its statistics from the training data."""

    def __init__(self, step_name: str, message: str) -> None:
        super().__init__(f"{step_name}: {message}")
        self.step_name = step_name


class DomainError(PipelineError, ValueError):
    """Input values fall outside the valid domain of a step."""


class PipelineStateError(PipelineError, RuntimeError):
    """A lifecycle operation was called in the wrong state (e.g. apply before fit)."""
