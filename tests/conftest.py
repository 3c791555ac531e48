"""Shared fixtures that build compressed n8n execution data."""

from __future__ import annotations

from typing import Any, Callable

import pytest

import n8n_xray.persistence as persistence
from n8n_xray.contracts import ExecutionRecord


class ArenaBuilder:
    """Assemble a flat arena the way n8n stores execution data."""

    def __init__(self) -> None:
        self.arena: list[Any] = [{"resultData": "1"}, None]

    def add(self, value: Any) -> str:
        self.arena.append(value)
        return str(len(self.arena) - 1)

    def port(self, items: list[Any]) -> str:
        pointers = [self.add({"json": self.add(item)}) for item in items]
        return self.add({"main": self.add([self.add(pointers)])})


def build_arena(nodes: dict[str, dict[str, Any]]) -> list[Any]:
    """Build an arena from ``{node_name: {startTime, executionTime, ...}}``.

    Optional keys per node: ``executionStatus``, ``output`` and ``input``
    (lists of item payloads). ``runs: []`` produces a node without runs.
    """
    builder = ArenaBuilder()
    run_data = {}
    for name, node in nodes.items():
        if node.get("runs") == []:
            run_data[name] = builder.add([])
            continue
        run = {
            "startTime": node.get("startTime", 0),
            "executionTime": node.get("executionTime", 0),
            "source": [],
        }
        if "executionStatus" in node:
            run["executionStatus"] = builder.add(node["executionStatus"])
        if "output" in node:
            run["data"] = builder.port(node["output"])
        if "input" in node:
            run["inputData"] = builder.port(node["input"])
        run_data[name] = builder.add([builder.add(run)])
    builder.arena[1] = {"runData": builder.add(run_data)}
    return builder.arena


def make_record(raw_data: Any, execution_id: str = "696", **kwargs: Any) -> ExecutionRecord:
    values = {
        "id": execution_id,
        "workflow_id": "wf-1",
        "status": "success",
        "finished": True,
        "started_at": "2025-09-08T10:00:00.000Z",
        "stopped_at": "2025-09-08T10:00:03.000Z",
        "raw_data": raw_data,
    }
    values.update(kwargs)
    return ExecutionRecord(**values)


@pytest.fixture
def arena_factory() -> Callable[[dict[str, dict[str, Any]]], list[Any]]:
    return build_arena


@pytest.fixture
def record_factory() -> Callable[..., ExecutionRecord]:
    return make_record


@pytest.fixture
def linear_record() -> ExecutionRecord:
    arena = build_arena(
        {
            "End": {
                "startTime": 200,
                "executionTime": 7,
                "executionStatus": "success",
                "input": [{"greeting": "hi"}],
                "output": [{"greeting": "hi", "done": True}],
            },
            "Start": {
                "startTime": 100,
                "executionTime": 3,
                "executionStatus": "success",
                "output": [{"greeting": "hi"}],
            },
        }
    )
    return make_record(arena)


@pytest.fixture
def workflow_data() -> dict[str, Any]:
    return {
        "id": "wf-1",
        "name": "Greeting",
        "nodes": [
            {"id": "0f6c5a2e-2f0c-4d43-9a55-1c2b3d4e5f60", "name": "Start"},
            {"id": "9b1d2c3e-4f5a-4b6c-8d7e-0f1a2b3c4d5e", "name": "End"},
        ],
    }


@pytest.fixture(autouse=True)
def _reset_repository():
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None
