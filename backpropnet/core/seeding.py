"""Deterministic seed derivation shared by every random consumer.

A network owns one :class:`SeedGenerator`. Each neuron created with random
weights and each dropout layer draws one 32-bit seed from it, so a single root
seed reproduces the whole model. Generator states are exported as plain
integers (position followed by the 624-word key) for the text format.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

STATE_TAG = "MT19937"
KEY_WORDS = 624


def make_rng(seed: int) -> np.random.Generator:
    return np.random.Generator(np.random.MT19937(seed))


def generator_state(bit_generator: np.random.MT19937) -> List[int]:
    """Return ``[pos, key_0, ..., key_623]`` for ``bit_generator``."""

    state = bit_generator.state["state"]
    return [int(state["pos"])] + [int(word) for word in state["key"]]


def restore_generator_state(bit_generator: np.random.MT19937, values: Sequence[int]) -> None:
    if len(values) != KEY_WORDS + 1:
        raise ValueError(
            f"{STATE_TAG} state needs {KEY_WORDS + 1} integers, got {len(values)}"
        )
    pos = int(values[0])
    if not 0 <= pos <= KEY_WORDS:
        raise ValueError(f"{STATE_TAG} position out of range: {pos}")
    if any(not 0 <= int(word) < 2**32 for word in values[1:]):
        raise ValueError(f"{STATE_TAG} key words must be unsigned 32-bit integers")
    bit_generator.state = {
        "bit_generator": STATE_TAG,
        "state": {"key": np.asarray(values[1:], dtype=np.uint32), "pos": pos},
    }


def _format_state(values: Sequence[int]) -> str:
    return " ".join([STATE_TAG, *(str(value) for value in values)])


def _parse_state(text: str) -> List[int]:
    tokens = text.split()
    if not tokens or tokens[0] != STATE_TAG:
        raise ValueError(f"Expected a {STATE_TAG} state, got {text[:32]!r}")
    return [int(token) for token in tokens[1:]]


def dump_rng(rng: np.random.Generator) -> str:
    """Serialize a generator from :func:`make_rng` as ``MT19937 <pos> <key...>``."""

    return _format_state(generator_state(rng.bit_generator))


def load_rng(text: str) -> np.random.Generator:
    bit_generator = np.random.MT19937(0)
    restore_generator_state(bit_generator, _parse_state(text))
    return np.random.Generator(bit_generator)


class SeedGenerator:
    """Source of 32-bit seeds backed by an MT19937 engine.

    ``seed=None`` seeds the engine from OS entropy.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._bit_generator = np.random.MT19937(seed)

    def seed(self) -> int:
        return int(self._bit_generator.random_raw())

    @property
    def bit_generator(self) -> np.random.MT19937:
        return self._bit_generator

    def get_state(self) -> List[int]:
        return generator_state(self._bit_generator)

    def set_state(self, values: Sequence[int]) -> None:
        restore_generator_state(self._bit_generator, values)

    @classmethod
    def from_state(cls, values: Sequence[int]) -> "SeedGenerator":
        generator = cls(0)
        generator.set_state(values)
        return generator

    def dumps(self) -> str:
        return _format_state(self.get_state())

    @classmethod
    def loads(cls, text: str) -> "SeedGenerator":
        return cls.from_state(_parse_state(text))


__all__ = [
    "KEY_WORDS",
    "STATE_TAG",
    "SeedGenerator",
    "dump_rng",
    "generator_state",
    "load_rng",
    "make_rng",
    "restore_generator_state",
]
