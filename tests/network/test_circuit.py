"""Tests for circuit selection."""

from __future__ import annotations

import random
from collections import Counter

import pytest

from onionnet.core.exceptions import InsufficientNodes, ValidationException
from onionnet.network.circuit import DEFAULT_CIRCUIT_LENGTH, Circuit, build_circuit
from onionnet.network.registry.records import NodeRecord


@pytest.fixture
def snapshot():
    return [NodeRecord(node_id=i, public_key=f"key-{i}") for i in range(5)]


class TestCircuit:
    def test_entry_and_exit(self, snapshot):
        circuit = Circuit(hops=tuple(snapshot[:3]))
        assert circuit.entry.node_id == 0
        assert circuit.exit.node_id == 2
        assert len(circuit) == 3

    def test_node_ids_in_order(self, snapshot):
        circuit = Circuit(hops=(snapshot[4], snapshot[1], snapshot[2]))
        assert circuit.node_ids == [4, 1, 2]
        assert [hop.node_id for hop in circuit] == [4, 1, 2]


class TestBuildCircuit:
    def test_default_length_is_three(self, snapshot):
        assert DEFAULT_CIRCUIT_LENGTH == 3
        assert len(build_circuit(snapshot)) == 3

    def test_hops_are_distinct_members(self, snapshot):
        for _ in range(50):
            circuit = build_circuit(snapshot)
            ids = circuit.node_ids
            assert len(set(ids)) == len(ids)
            assert set(ids) <= {0, 1, 2, 3, 4}

    def test_exact_size_snapshot(self, snapshot):
        circuit = build_circuit(snapshot[:3])
        assert sorted(circuit.node_ids) == [0, 1, 2]

    def test_insufficient_nodes(self, snapshot):
        with pytest.raises(InsufficientNodes) as exc_info:
            build_circuit(snapshot[:2])
        assert exc_info.value.available == 2
        assert exc_info.value.required == 3

    def test_empty_snapshot(self):
        with pytest.raises(InsufficientNodes):
            build_circuit([])

    def test_duplicate_records_count_once(self, snapshot):
        with pytest.raises(InsufficientNodes):
            build_circuit([snapshot[0], snapshot[0], snapshot[1]])

    def test_zero_length_rejected(self, snapshot):
        with pytest.raises(ValidationException):
            build_circuit(snapshot, length=0)

    def test_custom_length(self, snapshot):
        assert len(build_circuit(snapshot, length=5)) == 5

    def test_seeded_rng_is_reproducible(self, snapshot):
        first = build_circuit(snapshot, rng=random.Random(42))
        second = build_circuit(snapshot, rng=random.Random(42))
        assert first == second

    def test_every_node_can_be_entry(self, snapshot):
        rng = random.Random(7)
        entries = Counter(build_circuit(snapshot, rng=rng).entry.node_id for _ in range(500))
        assert set(entries) == {0, 1, 2, 3, 4}
