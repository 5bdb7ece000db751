from __future__ import annotations

"""Sample order-discount workflow seeded into an empty store."""

import logging
from typing import Optional

from nodeflow.engine.catalog import NodeType
from nodeflow.engine.graph import CanvasData, Position, WorkflowGraph
from nodeflow.engine.persistence import SQLitePersistence, Workflow

logger = logging.getLogger(__name__)

SAMPLE_NAME = "Sample: order discount"


def build_sample_canvas() -> CanvasData:
    """Trigger -> store an order -> check its total -> compute a discount."""
    graph = WorkflowGraph()
    trigger = graph.add_node(NodeType.MANUAL_TRIGGER, Position(x=80, y=200))
    store_order = graph.add_node(
        NodeType.SET_VARIABLE,
        Position(x=320, y=200),
        label="Store order",
        config={"variableName": "order", "value": '{"total": 120, "currency": "EUR"}'},
    )
    check_total = graph.add_node(
        NodeType.CONDITION,
        Position(x=560, y=200),
        label="Large order?",
        config={"condition": "input.value.total > 100"},
    )
    discount = graph.add_node(
        NodeType.CODE,
        Position(x=800, y=200),
        label="Compute discount",
        config={
            "code": (
                "order = variables.order\n"
                "rate = 0.1 if input.result else 0\n"
                'return {"discount": round(order.total * rate, 2), "currency": order.currency}'
            )
        },
    )
    graph.add_connection(trigger.id, store_order.id)
    graph.add_connection(store_order.id, check_total.id)
    graph.add_connection(check_total.id, discount.id, source_output="true")
    return graph.canvas


def seed_sample_workflow(store: Optional[SQLitePersistence]) -> Optional[Workflow]:
    """Create the sample workflow when the store holds none."""
    if store is None or store.list_workflows():
        return None
    workflow = store.create_workflow(
        SAMPLE_NAME, description="Stores an order and computes a discount for large totals."
    )
    workflow = store.save_canvas(workflow.id, build_sample_canvas())
    logger.info("Sample workflow seeded as '%s'", workflow.id)
    return workflow
