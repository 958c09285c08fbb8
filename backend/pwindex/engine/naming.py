"""Indexed node naming: ``name``, ``name~1``, ``name~2`` ...

PipeWire node ids are reused and node names repeat (two instances of the same
plugin share ``node.name``). Within one snapshot every same-named group is
sorted by a stable key and numbered from 0, giving each live node a unique,
typeable address. Ordinals are only meaningful for the snapshot they were
computed from.
"""
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidAddress, NodeNotFound, PortNotFound
from .graph import Node, Snapshot

logger = logging.getLogger(__name__)

ORDINAL_SEPARATOR = "~"


class SortKey(str, Enum):
    ID = "id"
    SERIAL = "serial"


@dataclass(frozen=True, order=True)
class IndexedName:
    base_name: str
    ordinal: int = 0

    def __str__(self) -> str:
        if self.ordinal == 0:
            return self.base_name
        return f"{self.base_name}{ORDINAL_SEPARATOR}{self.ordinal}"


@dataclass
class NameIndex:
    by_id: dict[int, IndexedName] = field(default_factory=dict)
    by_name: dict[IndexedName, int] = field(default_factory=dict)
    groups: dict[str, list[int]] = field(default_factory=dict)
    # Rendered addresses shared by more than one node (a literal "gate~1"
    # next to the second "gate").
    ambiguous: set[str] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.by_id)

    def name_of(self, node_id: int | None) -> str:
        """Rendered address of a node, ``node_<id>`` when it has none."""
        indexed = self.by_id.get(node_id) if node_id is not None else None
        if indexed is None:
            return f"node_{node_id}"
        return str(indexed)

    def entries(self) -> list[tuple[IndexedName, int]]:
        return sorted(self.by_name.items(), key=lambda item: str(item[0]))


def _sort_value(node: Node, sort_key: SortKey) -> tuple[int, int]:
    if sort_key == SortKey.SERIAL:
        return (node.creation_order, node.id)
    return (node.id, node.creation_order)


def build_index(snapshot: Snapshot, sort_key: SortKey = SortKey.ID) -> NameIndex:
    """Group nodes by name and number each group by ascending sort key."""
    sort_key = SortKey(sort_key)
    grouped: dict[str, list[Node]] = defaultdict(list)
    for node in snapshot.nodes:
        grouped[node.name].append(node)

    index = NameIndex()
    for name, nodes in grouped.items():
        nodes.sort(key=lambda n: _sort_value(n, sort_key))
        index.groups[name] = [n.id for n in nodes]
        for ordinal, node in enumerate(nodes):
            indexed = IndexedName(name, ordinal)
            index.by_id[node.id] = indexed
            index.by_name[indexed] = node.id

    rendered = Counter(str(indexed) for indexed in index.by_id.values())
    index.ambiguous = {text for text, count in rendered.items() if count > 1}
    for text in sorted(index.ambiguous):
        logger.warning("Address %r matches more than one node and cannot be resolved", text)

    if not index.by_id:
        logger.debug("No nodes found to enumerate")
    else:
        logger.debug(
            "Indexed %d nodes in %d name groups (sort key: %s)",
            len(index.by_id), len(index.groups), sort_key.value,
        )
    return index


def parse_address(text: str) -> IndexedName:
    """Split ``base`` or ``base~N`` into an IndexedName."""
    if ORDINAL_SEPARATOR not in text:
        if not text:
            raise InvalidAddress("Empty node address")
        return IndexedName(text, 0)

    base, _, suffix = text.rpartition(ORDINAL_SEPARATOR)
    if not base:
        raise InvalidAddress(f"Missing node name in address: {text!r}")
    if not (suffix.isascii() and suffix.isdigit()):
        raise InvalidAddress(
            f"Instance suffix must be a non-negative integer in {text!r}"
        )
    return IndexedName(base, int(suffix))


def resolve(index: NameIndex, addr: str | IndexedName) -> int:
    """Return the node id addressed by ``addr`` in this index.

    Text that is itself a node name (``gate~1`` as a literal name) resolves to
    that node's first instance. Text rendered for more than one node raises
    InvalidAddress.
    """
    if isinstance(addr, IndexedName):
        indexed = addr
    else:
        if addr in index.ambiguous:
            raise InvalidAddress(f"Ambiguous address {addr!r}: more than one node renders as it")
        literal = index.groups.get(addr)
        if literal:
            logger.debug("Resolved %s -> node ID %d", addr, literal[0])
            return literal[0]
        indexed = parse_address(addr)
    group = index.groups.get(indexed.base_name)
    if not group:
        raise NodeNotFound(f"Node not found: {indexed}")
    if indexed.ordinal >= len(group):
        raise NodeNotFound(
            f"Node not found: {indexed} "
            f"({len(group)} instance(s) of {indexed.base_name!r})"
        )
    node_id = group[indexed.ordinal]
    logger.debug("Resolved %s -> node ID %d", indexed, node_id)
    return node_id


def resolve_port(snapshot: Snapshot, node_id: int, port_name: str) -> int:
    """First port of ``node_id`` named ``port_name``, in snapshot order."""
    for port in snapshot.ports:
        if port.node_id == node_id and port.name == port_name:
            return port.id
    raise PortNotFound(f"Port not found: {port_name!r} on node ID {node_id}")
