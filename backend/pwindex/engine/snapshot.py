"""Parse a raw pw-dump into a typed Snapshot."""
import json
import logging
from typing import Any

from pydantic import TypeAdapter, ValidationError

from ..models.schemas import DumpRecord
from .errors import MalformedSnapshot
from .graph import Direction, Link, LinkState, Node, Port, Snapshot

logger = logging.getLogger(__name__)

NODE_TYPE = "PipeWire:Interface:Node"
PORT_TYPE = "PipeWire:Interface:Port"
LINK_TYPE = "PipeWire:Interface:Link"

_records_adapter = TypeAdapter(list[DumpRecord])

_DIRECTIONS = {
    "in": Direction.IN,
    "input": Direction.IN,
    "out": Direction.OUT,
    "output": Direction.OUT,
}


def parse_snapshot(raw: str | bytes | list[Any]) -> Snapshot:
    """Build a Snapshot from pw-dump output (JSON text or decoded list).

    Records of unknown type are ignored. Known records missing the fields
    needed to address them are skipped; structurally invalid input raises
    MalformedSnapshot.
    """
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            return Snapshot()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedSnapshot(f"Graph dump is not valid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, list):
        raise MalformedSnapshot(
            f"Graph dump must be a JSON array, got {type(data).__name__}"
        )

    try:
        records = _records_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedSnapshot(f"Graph dump has invalid records: {e}") from e

    nodes: list[Node] = []
    ports: list[Port] = []
    links: list[Link] = []
    for record in records:
        if record.type == NODE_TYPE:
            node = _parse_node(record)
            if node:
                nodes.append(node)
        elif record.type == PORT_TYPE:
            port = _parse_port(record)
            if port:
                ports.append(port)
        elif record.type == LINK_TYPE:
            link = _parse_link(record)
            if link:
                links.append(link)

    logger.debug(
        "Parsed snapshot: %d nodes, %d ports, %d links",
        len(nodes), len(ports), len(links),
    )
    return Snapshot(nodes=nodes, ports=ports, links=links)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def _parse_node(record: DumpRecord) -> Node | None:
    name = record.props.get("node.name")
    if not isinstance(name, str) or not name:
        logger.debug("Skipping node %d without node.name", record.id)
        return None
    serial = _as_int(record.props.get("object.serial"))
    return Node(
        id=record.id,
        name=name,
        creation_order=serial if serial is not None else record.id,
    )


def _parse_port(record: DumpRecord) -> Port | None:
    props = record.props
    node_id = _as_int(props.get("node.id"))
    name = props.get("port.name")
    direction = _DIRECTIONS.get((record.info or {}).get("direction"))
    if direction is None:
        direction = _DIRECTIONS.get(props.get("port.direction"))
    if node_id is None or not isinstance(name, str) or direction is None:
        logger.debug("Skipping incomplete port record %d", record.id)
        return None
    return Port(id=record.id, node_id=node_id, name=name, direction=direction)


def _parse_link(record: DumpRecord) -> Link | None:
    info = record.info or {}
    output_port_id = _as_int(info.get("output-port-id"))
    input_port_id = _as_int(info.get("input-port-id"))
    if output_port_id is None or input_port_id is None:
        logger.debug("Skipping link %d without port ids", record.id)
        return None
    try:
        state = LinkState(info.get("state"))
    except ValueError:
        state = LinkState.OTHER
    return Link(
        id=record.id,
        output_port_id=output_port_id,
        input_port_id=input_port_id,
        state=state,
        output_node_id=_as_int(info.get("output-node-id")),
        input_node_id=_as_int(info.get("input-node-id")),
    )
