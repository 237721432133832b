"""
Circuit selection.

A circuit is an ordered set of distinct relays picked uniformly at random
from the registry snapshot taken at send time. Index 0 is the entry node;
the last index is the exit node. Circuits live for one send only.
"""

from __future__ import annotations

import logging
import random
import secrets
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from onionnet.core.exceptions import InsufficientNodes, ValidationException
from onionnet.network.registry.records import NodeRecord

# Use cryptographically secure RNG for relay sampling (prevents predictable paths)
_secure_random = secrets.SystemRandom()

DEFAULT_CIRCUIT_LENGTH = 3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Circuit:
    """An ordered tuple of relays, entry first."""

    hops: tuple[NodeRecord, ...]

    def __len__(self) -> int:
        return len(self.hops)

    def __iter__(self) -> Iterator[NodeRecord]:
        return iter(self.hops)

    @property
    def entry(self) -> NodeRecord:
        return self.hops[0]

    @property
    def exit(self) -> NodeRecord:
        return self.hops[-1]

    @property
    def node_ids(self) -> list[int]:
        """Hop identifiers only; safe to keep for introspection."""
        return [hop.node_id for hop in self.hops]


def build_circuit(
    snapshot: Sequence[NodeRecord],
    length: int = DEFAULT_CIRCUIT_LENGTH,
    rng: random.Random | None = None,
) -> Circuit:
    """Select ``length`` distinct relays uniformly at random.

    Args:
        snapshot: Registry membership at send time
        length: Number of hops
        rng: Random source (defaults to the system CSPRNG)

    Raises:
        InsufficientNodes: If the snapshot has fewer than ``length`` distinct nodes.
    """
    if length < 1:
        raise ValidationException("circuit length must be at least 1", field="length", value=length)

    # Registry ids are unique already; dedupe anyway so hops stay distinct
    candidates = list({record.node_id: record for record in snapshot}.values())
    if len(candidates) < length:
        raise InsufficientNodes(available=len(candidates), required=length)

    hops = (rng or _secure_random).sample(candidates, length)
    circuit = Circuit(hops=tuple(hops))
    logger.debug(f"Selected circuit {circuit.node_ids} from {len(candidates)} candidates")
    return circuit
