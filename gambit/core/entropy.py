"""
Entropy suppliers for spin resolution.

The machine only needs `entropy_for(player) -> int`: a wide unsigned value
that stays the same for repeated calls within one block and may change in
later blocks.
"""

import hashlib
from typing import Dict, Optional, Protocol

from gambit.core.chain import BlockClock


class EntropySource(Protocol):
    """Capability the machine pulls entropy from."""

    def entropy_for(self, player: str) -> int:
        ...


class BlockSeedEntropy:
    """
    256-bit entropy from the current block's seed.

    SHA-256 over (seed, block number, player) so two players accepting in
    the same block see unrelated values.
    """

    def __init__(self, clock: BlockClock):
        self.clock = clock

    def entropy_for(self, player: str) -> int:
        block = self.clock.current_block
        digest = hashlib.sha256(
            self.clock.seed(block) + block.to_bytes(32, "big") + player.encode("utf-8")
        ).digest()
        return int.from_bytes(digest, "big")


class FixedEntropy:
    """Preset entropy, for tests and for replaying recorded spins."""

    def __init__(self, value: int = 0, overrides: Optional[Dict[str, int]] = None):
        if value < 0:
            raise ValueError("entropy must be a non-negative integer")
        self.value = value
        self.overrides = dict(overrides or {})

    def entropy_for(self, player: str) -> int:
        return self.overrides.get(player, self.value)
