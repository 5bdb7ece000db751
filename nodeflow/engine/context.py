from __future__ import annotations

"""Per-run execution context and engine settings."""

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from nodeflow import config


class EngineSettings(BaseModel):
    """Tunables for one executor; defaults come from the environment."""

    node_delay_seconds: float = Field(default=config.NODE_DELAY_SECONDS, ge=0)
    http_timeout_seconds: float = Field(default=config.HTTP_TIMEOUT_SECONDS, gt=0)
    evaluation_timeout_seconds: float = Field(default=config.EVALUATION_TIMEOUT_SECONDS, gt=0)
    conditional_branching: bool = config.CONDITIONAL_BRANCHING


class ExecutionContext(BaseModel):
    """
    Mutable state shared by every node of a single run.

    ``variables`` is written only by the set-variable operation; ``results`` maps a
    node id to the last output it produced. A context is created at run start and
    discarded afterwards, never shared between runs.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    variables: Dict[str, Any] = Field(default_factory=dict)
    results: Dict[str, Any] = Field(default_factory=dict)
    settings: EngineSettings = Field(default_factory=EngineSettings)
    http_client: Optional[httpx.AsyncClient] = Field(default=None, exclude=True)

    def set_variable(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def get_variables(self) -> Mapping[str, Any]:
        """Live read-only view; later writes are visible through it."""
        return MappingProxyType(self.variables)

    def record_result(self, node_id: str, value: Any) -> None:
        self.results[node_id] = value

    def get_result(self, node_id: str) -> Optional[Any]:
        return self.results.get(node_id)

    def has_result(self, node_id: str) -> bool:
        return node_id in self.results
