"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Typed per-call options for batched task execution.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ExecuteOptions(BaseModel):
    """
    Options governing one shared execution.

    Only the first caller's options apply; callers joining an in-flight
    execution inherit them.

    Attributes:
        timeout_ms: Abort waiting for the execution after this many
            milliseconds. Also accepted as `timeout`.
        retries: Additional attempts after the first failure.
        cancel_on_timeout: Cancel the in-flight attempt when the timeout
            fires instead of letting it finish in the background.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_ms: float | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("timeout_ms", "timeout"),
    )
    retries: int = Field(default=0, ge=0)
    cancel_on_timeout: bool = False

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    @property
    def timeout_s(self) -> float | None:
        if self.timeout_ms is None:
            return None
        return self.timeout_ms / 1000.0


OptionsInput = ExecuteOptions | Mapping[str, Any] | None


def coerce_options(
    value: OptionsInput,
    defaults: ExecuteOptions | None = None,
) -> ExecuteOptions:
    """
    Validate caller options and layer them over `defaults`.

    Only fields the caller set explicitly override the defaults.
    """
    base = defaults or ExecuteOptions()
    if value is None:
        return base
    if isinstance(value, ExecuteOptions):
        explicit = value
    elif isinstance(value, Mapping):
        explicit = ExecuteOptions.model_validate(dict(value))
    else:
        raise TypeError(
            f"options must be ExecuteOptions, a mapping, or None; got {type(value).__name__}"
        )
    overrides = {name: getattr(explicit, name) for name in explicit.model_fields_set}
    if not overrides:
        return base
    return base.model_copy(update=overrides)
