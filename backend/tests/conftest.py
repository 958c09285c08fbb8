"""Shared test fixtures for pw-indexed backend tests."""
import json
import sys
from pathlib import Path

import pytest

# Ensure pwindex package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pwindex.engine.cache import AlwaysStale, SnapshotCache
from pwindex.engine.naming import build_index
from pwindex.engine.service import GraphService
from pwindex.engine.snapshot import parse_snapshot


def node_record(node_id, name, serial=None):
    props = {"node.name": name}
    if serial is not None:
        props["object.serial"] = serial
    return {"id": node_id, "type": "PipeWire:Interface:Node", "info": {"props": props}}


def port_record(port_id, node_id, name, direction):
    return {
        "id": port_id,
        "type": "PipeWire:Interface:Port",
        "info": {
            "direction": "input" if direction == "in" else "output",
            "props": {"node.id": node_id, "port.name": name, "port.direction": direction},
        },
    }


def link_record(link_id, output_port, input_port, state="active", output_node=None, input_node=None):
    info = {"output-port-id": output_port, "input-port-id": input_port, "state": state}
    if output_node is not None:
        info["output-node-id"] = output_node
    if input_node is not None:
        info["input-node-id"] = input_node
    return {"id": link_id, "type": "PipeWire:Interface:Link", "info": info}


class FakeBackend:
    """In-memory graph that applies link mutations to its own dump."""

    def __init__(self, records):
        self.records = [dict(r) for r in records]
        self.created: list[tuple[int, int]] = []
        self.destroyed: list[int] = []
        self.fail_create: set[tuple[int, int]] = set()
        self.fail_destroy: set[int] = set()
        self.fetches = 0
        self._next_id = 1000

    def fetch_dump(self) -> str:
        self.fetches += 1
        return json.dumps(self.records)

    def links(self):
        return [r for r in self.records if r["type"] == "PipeWire:Interface:Link"]

    def link_pairs(self):
        return {
            (r["info"]["output-port-id"], r["info"]["input-port-id"]) for r in self.links()
        }

    def create_link(self, output_port_id, input_port_id):
        self.created.append((output_port_id, input_port_id))
        if (output_port_id, input_port_id) in self.fail_create:
            return False
        self._next_id += 1
        self.records.append(link_record(self._next_id, output_port_id, input_port_id))
        return True

    def destroy_link(self, link_id):
        self.destroyed.append(link_id)
        if link_id in self.fail_destroy:
            return False
        before = len(self.records)
        self.records = [r for r in self.records if r["id"] != link_id]
        return len(self.records) < before


@pytest.fixture
def graph_dump():
    """limiter(9), three gates (10, 12, 14) and a mic, with four links.

    By id: gate -> 10, gate~1 -> 12, gate~2 -> 14.
    By serial: gate -> 12, gate~1 -> 14, gate~2 -> 10.
    """
    return [
        {"id": 0, "type": "PipeWire:Interface:Core", "info": {"name": "pipewire-0"}},
        node_record(9, "limiter", serial=100),
        node_record(10, "gate", serial=105),
        node_record(12, "gate", serial=101),
        node_record(14, "gate", serial=102),
        node_record(5, "mic", serial=90),
        port_record(20, 9, "output_FL", "out"),
        port_record(21, 9, "output_FR", "out"),
        port_record(22, 9, "input_FL", "in"),
        port_record(30, 10, "probe_FL", "in"),
        port_record(31, 10, "output_FL", "out"),
        port_record(40, 12, "probe_FL", "in"),
        port_record(41, 12, "output_FL", "out"),
        port_record(50, 14, "probe_FL", "in"),
        port_record(51, 14, "output_FL", "out"),
        port_record(60, 5, "capture_FL", "out"),
        link_record(70, 20, 30, output_node=9, input_node=10),
        link_record(71, 20, 50, output_node=9, input_node=14),
        link_record(72, 60, 50, output_node=5, input_node=14),
        link_record(73, 31, 22, state="paused", output_node=10, input_node=9),
    ]


@pytest.fixture
def snapshot(graph_dump):
    return parse_snapshot(graph_dump)


@pytest.fixture
def index(snapshot):
    return build_index(snapshot)


@pytest.fixture
def backend(graph_dump):
    return FakeBackend(graph_dump)


@pytest.fixture
def service(backend):
    """Service that re-reads the fake graph on every call."""
    return GraphService(backend, SnapshotCache(backend.fetch_dump, AlwaysStale()))
