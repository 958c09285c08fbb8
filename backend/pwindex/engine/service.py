"""Graph service: listing, mutation and batch entry points for outer tooling.

Each call takes a (possibly cached) snapshot, builds a fresh name index for it
and hands both to the connection engine. Successful mutations invalidate the
cache so the next call sees the graph as it is now.
"""
import logging
import shlex
from dataclasses import dataclass, field

from .cache import SnapshotCache, TTLPolicy
from .connections import ConnectionEngine, MutationAction, MutationEvent, MutationResult
from .errors import InputError, InvalidFormat, PatchbayError, ResolutionError
from .graph import Direction, Snapshot
from .naming import IndexedName, NameIndex, SortKey, build_index
from .patchbay import DEFAULT_PATCHBAY_NAME, build_patchbay, read_patchbay
from .patterns import filter_matching, has_wildcards
from .pipewire import GraphBackend
from .snapshot import parse_snapshot

logger = logging.getLogger(__name__)

MUTATION_COMMANDS = ("make", "remove", "masked", "exclusive")
IMPORT_MODES = ("add", "merge", "replace")
LISTING_COMMANDS = ("nodes", "ports", "connections")
DRY_RUN_OPTION = "--dry-run"
BATCH_OPTIONS = (DRY_RUN_OPTION,)


@dataclass
class PortEntry:
    node: str
    port: str
    direction: Direction
    port_id: int


@dataclass
class ConnectionEntry:
    connection: str
    link_id: int
    state: str


@dataclass
class BatchLine:
    line_number: int
    command: str
    ok: bool
    summary: str
    error: str | None = None
    output: list[str] = field(default_factory=list)


@dataclass
class BatchResult:
    lines: list[BatchLine] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for line in self.lines if line.ok)

    @property
    def failed(self) -> int:
        return sum(1 for line in self.lines if not line.ok)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def summary(self) -> str:
        return (
            f"Total commands: {len(self.lines)}, "
            f"successful: {self.succeeded}, failed: {self.failed}"
        )


class GraphService:
    def __init__(
        self,
        backend: GraphBackend,
        cache: SnapshotCache | None = None,
        sort_key: SortKey | str = SortKey.ID,
    ):
        self.backend = backend
        self.cache = cache or SnapshotCache(backend.fetch_dump, TTLPolicy(5.0))
        self.sort_key = SortKey(sort_key)

    def snapshot(self) -> tuple[Snapshot, NameIndex]:
        snapshot = parse_snapshot(self.cache.get())
        return snapshot, build_index(snapshot, self.sort_key)

    def engine(self, dry_run: bool = False) -> ConnectionEngine:
        snapshot, index = self.snapshot()
        return ConnectionEngine(snapshot, index, self.backend, dry_run=dry_run)

    # -- listings ------------------------------------------------------

    def list_indexed_names(self, pattern: str | None = None) -> list[tuple[IndexedName, int]]:
        _, index = self.snapshot()
        return filter_matching(index.entries(), pattern, key=lambda e: str(e[0]))

    def list_ports(
        self,
        node_pattern: str | None = None,
        direction: Direction | str | None = None,
    ) -> list[PortEntry]:
        snapshot, index = self.snapshot()
        wanted = Direction(direction) if direction else None
        entries: list[PortEntry] = []
        for indexed, node_id in filter_matching(index.entries(), node_pattern, key=lambda e: str(e[0])):
            for port in snapshot.ports_of(node_id):
                if wanted and port.direction != wanted:
                    continue
                entries.append(PortEntry(str(indexed), port.name, port.direction, port.id))
        return entries

    def list_connections(self, pattern: str | None = None) -> list[ConnectionEntry]:
        """Active and paused links as canonical text, sorted."""
        engine = self.engine()
        entries = [
            ConnectionEntry(engine.canonical(link), link.id, link.state.value)
            for link in engine.snapshot.visible_links()
        ]
        entries = filter_matching(entries, pattern, key=lambda e: e.connection)
        return sorted(entries, key=lambda e: (e.connection, e.link_id))

    # -- mutations -----------------------------------------------------

    def _after_mutation(self, result: MutationResult):
        if not result.dry_run and any(
            e.action != MutationAction.EXISTS for e in result.events
        ):
            self.cache.invalidate()

    def run_mutation(self, command: str, spec: str, dry_run: bool = False) -> MutationResult:
        """Run one of make/remove/masked/exclusive against a fresh snapshot.

        ``remove`` with ``*`` or ``?`` in its argument removes by pattern,
        otherwise it removes one specific connection. Grammar and resolution
        errors propagate before anything is mutated.
        """
        if command not in MUTATION_COMMANDS:
            raise InvalidFormat(
                f"Unknown command {command!r}; expected one of {', '.join(MUTATION_COMMANDS)}"
            )
        engine = self.engine(dry_run)
        logger.debug("Running %s %r (dry run: %s)", command, spec, dry_run)

        if command == "make":
            result = engine.make(spec)
        elif command == "exclusive":
            result = engine.exclusive(spec)
        elif command == "masked":
            result = engine.remove_masked(spec)
        elif has_wildcards(spec):
            result = engine.remove_pattern(spec)
        else:
            result = engine.remove(spec)

        self._after_mutation(result)
        logger.info("%s %s: %s", command, spec, result.summary())
        return result

    def _listing(self, command: str, pattern: str | None) -> list[str]:
        if command == "nodes":
            return [str(name) for name, _ in self.list_indexed_names(pattern)]
        if command == "ports":
            return [
                f"{p.node}:{p.port} ({p.direction.value})" for p in self.list_ports(pattern)
            ]
        return [entry.connection for entry in self.list_connections(pattern)]

    def _run_batch_line(self, number: int, line: str, dry_run: bool) -> BatchLine:
        tokens = shlex.split(line)
        options = [t for t in tokens if t.startswith("--")]
        args = [t for t in tokens if not t.startswith("--")]
        for option in options:
            if option not in BATCH_OPTIONS:
                raise InvalidFormat(f"Unknown option {option!r}")
        dry_run = dry_run or DRY_RUN_OPTION in options
        if not args:
            raise InvalidFormat(f"Expected: <command> \"<spec>\", got {line!r}")

        command, rest = args[0], args[1:]
        if command in LISTING_COMMANDS:
            if len(rest) > 1:
                raise InvalidFormat(f"Expected: {command} [\"<pattern>\"], got {line!r}")
            output = self._listing(command, rest[0] if rest else None)
            return BatchLine(number, line, True, f"{command}: {len(output)} match(es)", output=output)

        if len(rest) != 1:
            raise InvalidFormat(f"Expected: <command> \"<spec>\", got {line!r}")
        result = self.run_mutation(command, rest[0], dry_run=dry_run)
        return BatchLine(number, line, result.ok, result.summary(), output=result.messages)

    def run_batch(self, script: str | list[str], dry_run: bool = False) -> BatchResult:
        """Run command lines in order, continuing past failures.

        Each line is a mutation (``make "<spec>"``) or a listing
        (``nodes "<pattern>"``, ``ports``, ``connections``) and may carry
        ``--dry-run`` for itself. Blank lines and ``#`` comments are skipped.
        """
        lines = script.splitlines() if isinstance(script, str) else script
        batch = BatchResult()
        for number, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            try:
                batch.lines.append(self._run_batch_line(number, line, dry_run))
            except (PatchbayError, ValueError) as e:
                logger.warning("Line %d failed: %s (%s)", number, line, e)
                batch.lines.append(BatchLine(number, line, False, f"ERROR: {e}", str(e)))
        logger.info("Batch complete. %s", batch.summary())
        return batch

    # -- patchbay ------------------------------------------------------

    def export_patchbay(self, name: str = DEFAULT_PATCHBAY_NAME) -> str:
        engine = self.engine()
        endpoints = [engine.endpoint_texts(link) for link in engine.snapshot.active_links()]
        logger.info("Exporting %d connection(s) to patchbay %r", len(endpoints), name)
        return build_patchbay(endpoints, name)

    def import_patchbay(self, xml_text: str, mode: str = "add", dry_run: bool = False) -> MutationResult:
        """Create every connection listed in a patchbay file.

        ``replace`` first removes all active links; ``add`` and ``merge`` keep
        existing links, which then count as unchanged.
        """
        if mode not in IMPORT_MODES:
            raise InvalidFormat(f"Invalid import mode {mode!r}; use add, replace or merge")
        items = read_patchbay(xml_text)
        result = MutationResult(dry_run=dry_run)
        engine = self.engine(dry_run)

        if mode == "replace":
            cleared = engine.remove_pattern("*")
            result.events.extend(cleared.events)
            result.messages.extend(cleared.messages)
            if dry_run:
                pruned = engine.snapshot.without_links({e.link_id for e in cleared.events})
                engine = ConnectionEngine(pruned, engine.index, self.backend, dry_run=True)
            else:
                self.cache.invalidate()
                engine = self.engine()

        for connection in items.connections:
            try:
                made = engine.make(connection)
            except (InputError, ResolutionError) as e:
                result.record(
                    MutationEvent(MutationAction.CREATE_FAILED, connection, dry_run=dry_run),
                    f"Failed to create: {connection} ({e})",
                )
                continue
            result.events.extend(made.events)
            result.messages.extend(made.messages)

        if items.skipped:
            result.messages.append(f"Skipped {items.skipped} incomplete item(s)")
        self._after_mutation(result)
        return result
