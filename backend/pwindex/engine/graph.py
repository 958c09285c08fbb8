"""Point-in-time graph data structures: nodes, ports and links."""
from dataclasses import dataclass, field
from enum import Enum


class Direction(str, Enum):
    IN = "in"
    OUT = "out"


class LinkState(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    OTHER = "other"


@dataclass(frozen=True)
class Node:
    id: int
    name: str
    creation_order: int  # object.serial; survives id reuse


@dataclass(frozen=True)
class Port:
    id: int
    node_id: int
    name: str
    direction: Direction


@dataclass(frozen=True)
class Link:
    id: int
    output_port_id: int
    input_port_id: int
    state: LinkState = LinkState.OTHER
    output_node_id: int | None = None
    input_node_id: int | None = None


@dataclass
class Snapshot:
    nodes: list[Node] = field(default_factory=list)
    ports: list[Port] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)

    def __post_init__(self):
        self._nodes_by_id = {n.id: n for n in self.nodes}
        self._ports_by_id = {p.id: p for p in self.ports}

    @property
    def is_empty(self) -> bool:
        return not (self.nodes or self.ports or self.links)

    def node(self, node_id: int) -> Node | None:
        return self._nodes_by_id.get(node_id)

    def port(self, port_id: int) -> Port | None:
        return self._ports_by_id.get(port_id)

    def ports_of(self, node_id: int) -> list[Port]:
        return [p for p in self.ports if p.node_id == node_id]

    def find_link(self, output_port_id: int, input_port_id: int) -> Link | None:
        """First link joining the two ports, in any state."""
        for link in self.links:
            if link.output_port_id == output_port_id and link.input_port_id == input_port_id:
                return link
        return None

    def links_into(self, input_port_id: int) -> list[Link]:
        return [l for l in self.links if l.input_port_id == input_port_id]

    def active_links(self) -> list[Link]:
        return [l for l in self.links if l.state == LinkState.ACTIVE]

    def visible_links(self) -> list[Link]:
        return [
            l for l in self.links
            if l.state in (LinkState.ACTIVE, LinkState.PAUSED)
        ]

    def without_links(self, link_ids: set[int | None]) -> "Snapshot":
        return Snapshot(
            nodes=list(self.nodes),
            ports=list(self.ports),
            links=[l for l in self.links if l.id not in link_ids],
        )
