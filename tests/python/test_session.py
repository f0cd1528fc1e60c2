"""Tests for port allocation and session state."""

import os
import sys
from datetime import timedelta
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from compositor_bridge.control.requests import EncoderPreset, EndpointKind, Resolution
from compositor_bridge.core.port_allocator import PortAllocator, next_free_port
from compositor_bridge.core.session_state import InputRecord, OutputRecord, PadRef, SessionState
from compositor_bridge.errors import InternalInconsistency


def _input(input_id, port, pad_id=None):
    return InputRecord(input_id, port, PadRef(EndpointKind.INPUT, pad_id or input_id))


def _output(output_id, port, pad_id=None):
    return OutputRecord(
        output_id, port, PadRef(EndpointKind.OUTPUT, pad_id or output_id), Resolution(1280, 720)
    )


class TestNextFreePort:
    """Test the pure port search."""

    def test_base_port_when_nothing_used(self):
        assert next_free_port(EndpointKind.INPUT, 4000, set()) == 4000

    def test_skips_used_ports_by_two(self):
        assert next_free_port(EndpointKind.INPUT, 4000, {4000, 4002}) == 4004

    def test_fills_gap(self):
        assert next_free_port(EndpointKind.INPUT, 4000, {4000, 4004}) == 4002

    def test_ignores_odd_used_ports(self):
        assert next_free_port(EndpointKind.INPUT, 4000, {4001}) == 4000

    def test_growing_used_set(self):
        used = set()
        for expected in (5000, 5002, 5004):
            port = next_free_port(EndpointKind.OUTPUT, 5000, used)
            assert port == expected
            used.add(port)


class TestPortAllocator:
    """Test per-kind base ports."""

    def setup_method(self):
        self.allocator = PortAllocator(4000, 5000)

    def test_bases(self):
        assert self.allocator.candidate(EndpointKind.INPUT, set()) == 4000
        assert self.allocator.candidate(EndpointKind.OUTPUT, set()) == 5000
        assert self.allocator.base_port(EndpointKind.OUTPUT) == 5000

    def test_after_rejected_port(self):
        assert self.allocator.candidate(EndpointKind.INPUT, set(), after=4000) == 4002

    def test_after_rejected_port_skips_used(self):
        assert self.allocator.candidate(EndpointKind.INPUT, {4002}, after=4000) == 4004

    def test_odd_base_rejected(self):
        with pytest.raises(ValueError):
            PortAllocator(4001, 5000)


class TestSessionState:
    """Test SessionState bookkeeping."""

    def setup_method(self):
        self.state = SessionState(control_port=8001, framerate=30)

    def test_used_ports_is_union(self):
        self.state.add_input(_input("a", 4000))
        self.state.add_output(_output("main", 5000))

        assert self.state.used_ports() == {4000, 5000}

    def test_find_ids(self):
        self.state.add_input(_input("a", 4000, pad_id="p1"))
        self.state.add_output(_output("main", 5000, pad_id="p2"))

        assert self.state.find_input_id(PadRef(EndpointKind.INPUT, "p1")) == "a"
        assert self.state.find_output_id(PadRef(EndpointKind.OUTPUT, "p2")) == "main"
        assert self.state.find_input_id(PadRef(EndpointKind.INPUT, "p2")) is None

    def test_remove_returns_id_and_frees_port(self):
        self.state.add_input(_input("a", 4000))

        assert self.state.remove_input(PadRef(EndpointKind.INPUT, "a")) == "a"
        assert self.state.used_ports() == set()

    def test_remove_unknown_returns_none(self):
        assert self.state.remove_input(PadRef(EndpointKind.INPUT, "ghost")) is None
        assert self.state.remove_output(PadRef(EndpointKind.OUTPUT, "ghost")) is None

    def test_port_cannot_be_assigned_twice(self):
        self.state.add_input(_input("a", 4000))

        with pytest.raises(InternalInconsistency):
            self.state.add_input(_input("b", 4000))

    def test_duplicate_pad_rejected(self):
        self.state.add_input(_input("a", 4000, pad_id="p"))

        with pytest.raises(InternalInconsistency):
            self.state.add_input(_input("b", 4002, pad_id="p"))

    def test_duplicate_id_rejected(self):
        self.state.add_output(_output("main", 5000, pad_id="p1"))

        with pytest.raises(InternalInconsistency):
            self.state.add_output(_output("main", 5002, pad_id="p2"))

    def test_id_reusable_after_removal(self):
        self.state.add_input(_input("a", 4000, pad_id="p1"))
        self.state.remove_input(PadRef(EndpointKind.INPUT, "p1"))
        self.state.add_input(_input("a", 4000, pad_id="p2"))

        assert self.state.has_input_id("a")

    def test_snapshot_is_detached(self):
        self.state.add_input(_input("a", 4000))
        snapshot = self.state.snapshot()
        self.state.remove_input(PadRef(EndpointKind.INPUT, "a"))

        assert len(snapshot.inputs) == 1
        record = snapshot.to_dict()["inputs"][0]
        assert record["input_id"] == "a"
        assert record["port"] == 4000
        assert record["pad"] == "input:a"
        assert snapshot.to_dict()["framerate"] == 30

    def test_registration_time_is_utc(self):
        self.state.add_input(_input("a", 4000))
        record = self.state.inputs[0]

        assert record.registered_at.utcoffset() == timedelta(0)
        assert record.to_dict()["registered_at"] == record.registered_at.isoformat()
        assert record == _input("a", 4000)

    def test_output_record_serialization(self):
        record = OutputRecord(
            "main", 5000, PadRef(EndpointKind.OUTPUT, 0), Resolution(1920, 1080), EncoderPreset.FAST
        )

        assert record.to_dict()["resolution"] == {"width": 1920, "height": 1080}
        assert record.to_dict()["encoder_preset"] == "fast"


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
