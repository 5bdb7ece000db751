from __future__ import annotations

"""Static catalog of node types: display info, ports, and config field schema."""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .exceptions import UnknownNodeTypeError

TRIGGER_PREFIX = "trigger-"


class NodeType(str, Enum):
    MANUAL_TRIGGER = "trigger-manual"
    HTTP_REQUEST = "action-http"
    SET_VARIABLE = "action-set-variable"
    CONDITION = "action-condition"
    CODE = "action-code"


def is_trigger_type(node_type: str) -> bool:
    """Trigger detection is by tag prefix, so unknown trigger tags still start a run."""
    return str(node_type).startswith(TRIGGER_PREFIX)


class _CatalogModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class FieldOption(_CatalogModel):
    label: str
    value: str


class ConfigField(_CatalogModel):
    name: str
    label: str
    type: Literal["text", "textarea", "select", "code", "number", "boolean"]
    placeholder: Optional[str] = None
    options: Optional[Tuple[FieldOption, ...]] = None
    default_value: Optional[Any] = None


class InputPort(_CatalogModel):
    name: str
    type: str
    required: bool = False


class OutputPort(_CatalogModel):
    name: str
    type: str


class NodeCatalogEntry(_CatalogModel):
    type: NodeType
    label: str
    icon: str
    color: str
    category: Literal["trigger", "action"]
    description: str
    inputs: Tuple[InputPort, ...] = ()
    outputs: Tuple[OutputPort, ...] = ()
    config_fields: Tuple[ConfigField, ...] = ()

    def default_config(self) -> Dict[str, Any]:
        return {
            field.name: field.default_value
            for field in self.config_fields
            if field.default_value is not None
        }


_ENTRIES: Tuple[NodeCatalogEntry, ...] = (
    NodeCatalogEntry(
        type=NodeType.MANUAL_TRIGGER,
        label="Manual Trigger",
        icon="Play",
        color="bg-emerald-500",
        category="trigger",
        description="Manually start the workflow with a button click",
        outputs=(OutputPort(name="output", type="any"),),
        config_fields=(
            ConfigField(
                name="buttonLabel",
                label="Button Label",
                type="text",
                placeholder="Start Workflow",
                default_value="Start Workflow",
            ),
        ),
    ),
    NodeCatalogEntry(
        type=NodeType.HTTP_REQUEST,
        label="HTTP Request",
        icon="Globe",
        color="bg-blue-500",
        category="action",
        description="Make HTTP requests to external APIs",
        inputs=(InputPort(name="input", type="any", required=False),),
        outputs=(OutputPort(name="response", type="object"),),
        config_fields=(
            ConfigField(
                name="method",
                label="Method",
                type="select",
                options=tuple(
                    FieldOption(label=method, value=method)
                    for method in ("GET", "POST", "PUT", "DELETE")
                ),
                default_value="GET",
            ),
            ConfigField(
                name="url",
                label="URL",
                type="text",
                placeholder="https://api.example.com/data",
            ),
            ConfigField(
                name="headers",
                label="Headers (JSON)",
                type="code",
                placeholder='{"Content-Type": "application/json"}',
                default_value="{}",
            ),
            ConfigField(
                name="body",
                label="Body (JSON)",
                type="code",
                placeholder='{"key": "value"}',
            ),
        ),
    ),
    NodeCatalogEntry(
        type=NodeType.SET_VARIABLE,
        label="Set Variable",
        icon="Database",
        color="bg-purple-500",
        category="action",
        description="Store data in a variable for later use",
        inputs=(InputPort(name="input", type="any", required=False),),
        outputs=(OutputPort(name="output", type="any"),),
        config_fields=(
            ConfigField(
                name="variableName",
                label="Variable Name",
                type="text",
                placeholder="myVariable",
            ),
            ConfigField(
                name="value",
                label="Value",
                type="code",
                placeholder='{"key": "value"}',
            ),
        ),
    ),
    NodeCatalogEntry(
        type=NodeType.CONDITION,
        label="IF Condition",
        icon="GitBranch",
        color="bg-orange-500",
        category="action",
        description="Branch workflow based on a condition",
        inputs=(InputPort(name="input", type="any", required=True),),
        outputs=(
            OutputPort(name="true", type="any"),
            OutputPort(name="false", type="any"),
        ),
        config_fields=(
            ConfigField(
                name="condition",
                label="Condition (Python expression)",
                type="code",
                placeholder="input.value > 10",
            ),
        ),
    ),
    NodeCatalogEntry(
        type=NodeType.CODE,
        label="Code",
        icon="Code",
        color="bg-slate-500",
        category="action",
        description="Execute custom Python code",
        inputs=(InputPort(name="input", type="any", required=False),),
        outputs=(OutputPort(name="output", type="any"),),
        config_fields=(
            ConfigField(
                name="code",
                label="Python Code",
                type="code",
                placeholder='return {"result": input.value * 2}',
            ),
        ),
    ),
)


class NodeCatalog:
    """Read-only index of catalog entries keyed by type tag."""

    def __init__(self, entries: Tuple[NodeCatalogEntry, ...]) -> None:
        self._entries = entries
        self._index: Mapping[str, NodeCatalogEntry] = MappingProxyType(
            {entry.type.value: entry for entry in entries}
        )

    def lookup(self, node_type: str) -> Optional[NodeCatalogEntry]:
        return self._index.get(str(getattr(node_type, "value", node_type)))

    def get(self, node_type: str) -> NodeCatalogEntry:
        entry = self.lookup(node_type)
        if entry is None:
            raise UnknownNodeTypeError(str(node_type))
        return entry

    def all(self) -> List[NodeCatalogEntry]:
        return list(self._entries)

    def by_category(self, category: str) -> List[NodeCatalogEntry]:
        return [entry for entry in self._entries if entry.category == category]

    def __contains__(self, node_type: object) -> bool:
        return self.lookup(node_type) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._entries)


node_catalog = NodeCatalog(_ENTRIES)
