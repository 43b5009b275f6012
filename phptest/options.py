"""Configuration types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict


class TranspileOptions(BaseModel):
    """Per-call options bag accepted by the transpile helpers."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    # Generate a source map so that .normalise_stack(...) can be used later
    source_map: bool = False
    # Extra options merged into the PHP parser's options
    parser: dict[str, Any] = {}
    # Extra options merged into the compiler's options
    compiler: dict[str, Any] = {}
    # Forwarded untouched as the compiler's third argument
    transpiler: Any = None

    @classmethod
    def coerce(cls, options: TranspileOptions | Mapping[str, Any] | None) -> TranspileOptions:
        if options is None:
            return cls()
        if isinstance(options, TranspileOptions):
            return options
        return cls.model_validate(dict(options))


@dataclass(frozen=True)
class ToolsConfig:
    """Groups the settings an IntegrationTools instance was created with."""

    runtime_library_path: str
    force_opcodes_async: bool = True
