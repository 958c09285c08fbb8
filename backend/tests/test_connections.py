"""Tests for the connection engine: make, remove, masked, exclusive, dry run."""
import pytest

from pwindex.engine.connections import ConnectionEngine, MutationAction
from pwindex.engine.errors import (
    InvalidAddress, InvalidFormat, LinkNotFound, MutationFailed, NodeNotFound,
    PortNotFound,
)
from pwindex.engine.naming import build_index
from pwindex.engine.snapshot import parse_snapshot


def make_engine(backend, dry_run=False):
    snapshot = parse_snapshot(backend.fetch_dump())
    return ConnectionEngine(snapshot, build_index(snapshot), backend, dry_run=dry_run)


class TestCanonical:
    def test_canonical_text(self, backend):
        engine = make_engine(backend)
        texts = sorted(engine.canonical(l) for l in engine.snapshot.links)
        assert texts == [
            "gate:output_FL->limiter:input_FL",
            "limiter:output_FL->gate:probe_FL",
            "limiter:output_FL->gate~2:probe_FL",
            "mic:capture_FL->gate~2:probe_FL",
        ]

    def test_unknown_port_fallback(self, backend):
        from conftest import link_record
        backend.records.append(link_record(99, 500, 30, output_node=77, input_node=10))
        engine = make_engine(backend)
        link = next(l for l in engine.snapshot.links if l.id == 99)
        assert engine.canonical(link) == "node_77:port_500->gate:probe_FL"


class TestMake:
    def test_creates_link(self, backend):
        result = make_engine(backend).make("limiter:output_FR->gate~1:probe_FL")
        assert backend.created == [(21, 40)]
        assert result.created == 1
        assert result.ok

    def test_idempotent(self, backend):
        make_engine(backend).make("limiter:output_FR->gate~1:probe_FL")
        second = make_engine(backend).make("limiter:output_FR->gate~1:probe_FL")
        assert backend.created == [(21, 40)]
        assert second.unchanged == 1
        assert second.created == 0
        assert second.ok

    def test_existing_paused_link_is_noop(self, backend):
        result = make_engine(backend).make("gate:output_FL->limiter:input_FL")
        assert backend.created == []
        assert result.events[0].action == MutationAction.EXISTS
        assert result.events[0].link_id == 73

    def test_primitive_failure_counted(self, backend):
        backend.fail_create.add((21, 40))
        result = make_engine(backend).make("limiter:output_FR->gate~1:probe_FL")
        assert result.failed == 1
        assert not result.ok
        assert backend.created == [(21, 40)]  # attempted once, no retry

    def test_raise_for_failures(self, backend):
        backend.fail_create.add((21, 40))
        result = make_engine(backend).make("limiter:output_FR->gate~1:probe_FL")
        with pytest.raises(MutationFailed):
            result.raise_for_failures()

    def test_unknown_node_aborts(self, backend):
        with pytest.raises(NodeNotFound):
            make_engine(backend).make("limiter:output_FL->gate~5:probe_FL")
        assert backend.created == []

    def test_unknown_port_aborts(self, backend):
        with pytest.raises(PortNotFound):
            make_engine(backend).make("limiter:output_XX->gate:probe_FL")
        assert backend.created == []

    def test_bad_format(self, backend):
        with pytest.raises(InvalidFormat):
            make_engine(backend).make("badinput")

    def test_same_engine_does_not_duplicate(self, backend):
        engine = make_engine(backend)
        engine.make("limiter:output_FR->gate~1:probe_FL")
        second = engine.make("limiter:output_FR->gate~1:probe_FL")
        assert backend.created == [(21, 40)]
        assert second.events[0].action == MutationAction.EXISTS

    def test_failed_create_not_remembered(self, backend):
        engine = make_engine(backend)
        backend.fail_create.add((21, 40))
        engine.make("limiter:output_FR->gate~1:probe_FL")
        backend.fail_create.clear()
        second = engine.make("limiter:output_FR->gate~1:probe_FL")
        assert second.created == 1
        assert backend.created == [(21, 40), (21, 40)]


class TestRemove:
    def test_specific(self, backend):
        result = make_engine(backend).remove("limiter:output_FL->gate~2:probe_FL")
        assert backend.destroyed == [71]
        assert result.removed == 1

    def test_link_not_found(self, backend):
        with pytest.raises(LinkNotFound):
            make_engine(backend).remove("limiter:output_FR->gate:probe_FL")
        assert backend.destroyed == []

    def test_vanished_link_is_failure(self, backend):
        engine = make_engine(backend)
        backend.records = [r for r in backend.records if r["id"] != 71]
        result = engine.remove("limiter:output_FL->gate~2:probe_FL")
        assert result.failed == 1
        assert result.removed == 0


class TestRemovePattern:
    def test_star_matches_every_active_link(self, backend):
        result = make_engine(backend).remove_pattern("*")
        assert sorted(backend.destroyed) == [70, 71, 72]
        assert result.removed == 3

    def test_paused_links_untouched(self, backend):
        make_engine(backend).remove_pattern("*")
        assert 73 not in backend.destroyed

    def test_whole_string_pattern(self, backend):
        result = make_engine(backend).remove_pattern("mic:*")
        assert backend.destroyed == [72]
        assert result.events[0].connection == "mic:capture_FL->gate~2:probe_FL"

    def test_no_match(self, backend):
        result = make_engine(backend).remove_pattern("*compressor*")
        assert result.events == []
        assert result.ok

    def test_partial_failure_surfaced(self, backend):
        backend.fail_destroy.add(71)
        result = make_engine(backend).remove_pattern("*gate*")
        assert result.removed == 2
        assert result.failed == 1
        assert not result.ok


class TestRemoveMasked:
    def test_target_mask(self, backend):
        result = make_engine(backend).remove_masked("*->*gate~2*")
        assert sorted(backend.destroyed) == [71, 72]
        assert result.removed == 2

    def test_both_sides_must_match(self, backend):
        make_engine(backend).remove_masked("mic*->gate:*")
        assert backend.destroyed == []

    def test_source_mask(self, backend):
        make_engine(backend).remove_masked("limiter:*->*")
        assert sorted(backend.destroyed) == [70, 71]

    def test_requires_arrow(self, backend):
        with pytest.raises(InvalidFormat):
            make_engine(backend).remove_masked("*gate~2*")


class TestExclusive:
    def test_keeps_desired_and_removes_other(self, backend):
        result = make_engine(backend).exclusive("limiter:output_FL->gate~2:probe_FL")
        assert backend.destroyed == [72]
        assert backend.created == []
        assert result.removed == 1
        assert result.unchanged == 1
        assert (20, 50) in backend.link_pairs()

    def test_creates_after_clearing(self, backend):
        result = make_engine(backend).exclusive("limiter:output_FR->gate~2:probe_FL")
        assert sorted(backend.destroyed) == [71, 72]
        assert backend.created == [(21, 50)]
        assert result.removed == 2
        assert result.created == 1

    def test_fan_out_untouched(self, backend):
        make_engine(backend).exclusive("limiter:output_FL->gate~1:probe_FL")
        assert backend.destroyed == []
        pairs = backend.link_pairs()
        assert {(20, 30), (20, 50), (20, 40)} <= pairs

    def test_removal_failure_still_creates(self, backend):
        backend.fail_destroy.add(72)
        result = make_engine(backend).exclusive("limiter:output_FR->gate~2:probe_FL")
        assert result.failed == 1
        assert backend.created == [(21, 50)]
        assert not result.ok

    def test_unresolved_aborts_before_removal(self, backend):
        with pytest.raises(PortNotFound):
            make_engine(backend).exclusive("limiter:nope->gate~2:probe_FL")
        assert backend.destroyed == []


class TestDryRun:
    def test_make(self, backend):
        result = make_engine(backend, dry_run=True).make("limiter:output_FR->gate~1:probe_FL")
        assert backend.created == []
        assert result.created == 1
        assert result.events[0].dry_run
        assert result.summary().startswith("DRY RUN")

    def test_remove_pattern(self, backend):
        result = make_engine(backend, dry_run=True).remove_pattern("*")
        assert backend.destroyed == []
        assert result.removed == 3

    def test_exclusive_same_decisions(self, backend):
        dry = make_engine(backend, dry_run=True).exclusive("limiter:output_FR->gate~2:probe_FL")
        live = make_engine(backend).exclusive("limiter:output_FR->gate~2:probe_FL")
        assert [(e.action, e.connection) for e in dry.events] == \
            [(e.action, e.connection) for e in live.events]

    def test_existing_link_still_reported(self, backend):
        result = make_engine(backend, dry_run=True).make("limiter:output_FL->gate:probe_FL")
        assert result.unchanged == 1


class TestSummary:
    def test_summary_line(self, backend):
        result = make_engine(backend).remove_pattern("*gate~2*")
        assert result.summary() == "created 0, removed 2, unchanged 0, failed 0 connection(s)"


class TestLiteralTildeConnections:
    def test_ambiguous_target_aborts(self, backend):
        from conftest import node_record, port_record
        backend.records += [node_record(80, "gate~1"), port_record(81, 80, "probe_FL", "in")]
        with pytest.raises(InvalidAddress):
            make_engine(backend).make("limiter:output_FR->gate~1:probe_FL")
        assert backend.created == []

    def test_literal_target_without_collision(self, backend):
        from conftest import node_record, port_record
        backend.records += [node_record(80, "mic~3"), port_record(81, 80, "probe_FL", "in")]
        make_engine(backend).make("limiter:output_FR->mic~3:probe_FL")
        assert backend.created == [(21, 81)]
