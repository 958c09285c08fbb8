"""Connection engine: idempotent make/remove/exclusive over a graph snapshot.

Every operation works against one snapshot and its name index. Address and
port resolution happens before any mutation, so a bad address never leaves
the graph half-changed. Once mutation starts each link create/destroy is
independent: failures are recorded on the result and counted, never retried.

The live graph may change between the snapshot and the mutation. A link that
already exists is a successful no-op, and a link that vanished shows up as a
failed destroy rather than an exception.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum

from .errors import LinkNotFound, MutationFailed
from .graph import Link, LinkState, Snapshot
from .naming import NameIndex, resolve, resolve_port
from .patterns import matches
from .pipewire import GraphBackend
from .spec_parser import ARROW, PORT_SEPARATOR, ConnectionSpec, parse_connection, split_mask

logger = logging.getLogger(__name__)


class MutationAction(str, Enum):
    CREATED = "created"
    REMOVED = "removed"
    EXISTS = "exists"
    CREATE_FAILED = "create_failed"
    REMOVE_FAILED = "remove_failed"


_FAILURES = (MutationAction.CREATE_FAILED, MutationAction.REMOVE_FAILED)


@dataclass
class MutationEvent:
    action: MutationAction
    connection: str
    link_id: int | None = None
    output_port_id: int | None = None
    input_port_id: int | None = None
    dry_run: bool = False


@dataclass
class MutationResult:
    dry_run: bool = False
    events: list[MutationEvent] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    def _count(self, *actions: MutationAction) -> int:
        return sum(1 for e in self.events if e.action in actions)

    @property
    def created(self) -> int:
        return self._count(MutationAction.CREATED)

    @property
    def removed(self) -> int:
        return self._count(MutationAction.REMOVED)

    @property
    def unchanged(self) -> int:
        return self._count(MutationAction.EXISTS)

    @property
    def failed(self) -> int:
        return self._count(*_FAILURES)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def record(self, event: MutationEvent, message: str):
        self.events.append(event)
        self.messages.append(message)

    def summary(self) -> str:
        prefix = "DRY RUN: " if self.dry_run else ""
        return (
            f"{prefix}created {self.created}, removed {self.removed}, "
            f"unchanged {self.unchanged}, failed {self.failed} connection(s)"
        )

    def raise_for_failures(self):
        failures = [e.connection for e in self.events if e.action in _FAILURES]
        if failures:
            raise MutationFailed(failures)


class ConnectionEngine:
    def __init__(
        self,
        snapshot: Snapshot,
        index: NameIndex,
        backend: GraphBackend,
        dry_run: bool = False,
    ):
        self.snapshot = snapshot
        self.index = index
        self.backend = backend
        self.dry_run = dry_run
        # (output, input) pairs created, or planned in dry run, by this engine.
        # The snapshot does not see them.
        self._made: set[tuple[int, int]] = set()

    # -- rendering -----------------------------------------------------

    def _port_text(self, port_id: int, fallback_node_id: int | None) -> str:
        port = self.snapshot.port(port_id)
        node_id = port.node_id if port else fallback_node_id
        port_name = port.name if port else f"port_{port_id}"
        return f"{self.index.name_of(node_id)}{PORT_SEPARATOR}{port_name}"

    def endpoint_texts(self, link: Link) -> tuple[str, str]:
        """Canonical ``addr:port`` text for the source and target of a link."""
        return (
            self._port_text(link.output_port_id, link.output_node_id),
            self._port_text(link.input_port_id, link.input_node_id),
        )

    def canonical(self, link: Link) -> str:
        source, target = self.endpoint_texts(link)
        return f"{source}{ARROW}{target}"

    # -- resolution ----------------------------------------------------

    def resolve_endpoints(self, spec: ConnectionSpec) -> tuple[int, int]:
        """Port ids (output, input) for a spec; raises on any unresolved part."""
        source_node = resolve(self.index, spec.source_node_text)
        target_node = resolve(self.index, spec.target_node_text)
        output_port = resolve_port(self.snapshot, source_node, spec.source_port)
        input_port = resolve_port(self.snapshot, target_node, spec.target_port)
        logger.debug(
            "Resolved %s -> port %d, %s -> port %d",
            spec.source_text, output_port, spec.target_text, input_port,
        )
        return output_port, input_port

    @staticmethod
    def _coerce(spec: str | ConnectionSpec) -> ConnectionSpec:
        return spec if isinstance(spec, ConnectionSpec) else parse_connection(spec)

    # -- primitives ----------------------------------------------------

    def _create(self, result: MutationResult, connection: str, output_port: int, input_port: int):
        existing = self.snapshot.find_link(output_port, input_port)
        if existing is not None:
            result.record(
                MutationEvent(MutationAction.EXISTS, connection, existing.id,
                              output_port, input_port, self.dry_run),
                f"Connection already exists (Link ID: {existing.id}): {connection}",
            )
            return
        if (output_port, input_port) in self._made:
            result.record(
                MutationEvent(MutationAction.EXISTS, connection, None,
                              output_port, input_port, self.dry_run),
                f"Connection already exists: {connection}",
            )
            return

        if self.dry_run:
            self._made.add((output_port, input_port))
            result.record(
                MutationEvent(MutationAction.CREATED, connection, None,
                              output_port, input_port, dry_run=True),
                f"DRY RUN: Would create connection {connection} "
                f"(ports {output_port} -> {input_port})",
            )
            return

        logger.info("Creating connection %s (ports %d -> %d)", connection, output_port, input_port)
        if self.backend.create_link(output_port, input_port):
            self._made.add((output_port, input_port))
            action, message = MutationAction.CREATED, f"Created: {connection}"
        else:
            action, message = MutationAction.CREATE_FAILED, f"Failed to create: {connection}"
        result.record(MutationEvent(action, connection, None, output_port, input_port), message)

    def _destroy(self, result: MutationResult, link: Link, connection: str | None = None):
        connection = connection or self.canonical(link)
        if self.dry_run:
            result.record(
                MutationEvent(MutationAction.REMOVED, connection, link.id,
                              link.output_port_id, link.input_port_id, dry_run=True),
                f"DRY RUN: Would remove {connection} (Link ID: {link.id})",
            )
            return

        logger.info("Removing connection %s (Link ID: %d)", connection, link.id)
        if self.backend.destroy_link(link.id):
            action, message = MutationAction.REMOVED, f"Removed: {connection}"
        else:
            action, message = MutationAction.REMOVE_FAILED, f"Failed to remove: {connection}"
        result.record(
            MutationEvent(action, connection, link.id, link.output_port_id, link.input_port_id),
            message,
        )

    # -- operations ----------------------------------------------------

    def make(self, spec: str | ConnectionSpec) -> MutationResult:
        spec = self._coerce(spec)
        output_port, input_port = self.resolve_endpoints(spec)
        result = MutationResult(dry_run=self.dry_run)
        self._create(result, spec.canonical, output_port, input_port)
        return result

    def remove(self, spec: str | ConnectionSpec) -> MutationResult:
        spec = self._coerce(spec)
        output_port, input_port = self.resolve_endpoints(spec)
        link = self.snapshot.find_link(output_port, input_port)
        if link is None:
            raise LinkNotFound(f"Connection not found: {spec.canonical}")
        result = MutationResult(dry_run=self.dry_run)
        self._destroy(result, link, spec.canonical)
        return result

    def remove_pattern(self, pattern: str) -> MutationResult:
        """Remove every active link whose canonical text matches ``pattern``."""
        result = MutationResult(dry_run=self.dry_run)
        for link in self.snapshot.active_links():
            connection = self.canonical(link)
            if matches(connection, pattern):
                self._destroy(result, link, connection)
        logger.debug("Pattern %r matched %d link(s)", pattern, len(result.events))
        return result

    def remove_masked(self, mask: str) -> MutationResult:
        """Remove active links whose source and target both match their pattern.

        ``mask`` is ``source_pattern->target_pattern``; the split is fixed by
        the literal arrow, each side is matched against ``addr:port`` text.
        """
        source_pattern, target_pattern = split_mask(mask)
        result = MutationResult(dry_run=self.dry_run)
        for link in self.snapshot.active_links():
            source, target = self.endpoint_texts(link)
            if matches(source, source_pattern) and matches(target, target_pattern):
                self._destroy(result, link, f"{source}{ARROW}{target}")
        return result

    def exclusive(self, spec: str | ConnectionSpec) -> MutationResult:
        """Make ``spec`` the only active link into its target input port.

        Links from the source output to other inputs are left alone.
        """
        spec = self._coerce(spec)
        output_port, input_port = self.resolve_endpoints(spec)
        result = MutationResult(dry_run=self.dry_run)

        for link in self.snapshot.links_into(input_port):
            if link.state != LinkState.ACTIVE:
                continue
            if link.output_port_id == output_port:
                logger.debug("Keeping desired connection (Link ID: %d)", link.id)
                continue
            self._destroy(result, link)

        self._create(result, spec.canonical, output_port, input_port)
        return result
