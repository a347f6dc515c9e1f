"""Random sources for offline/demo boards."""
import random
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TypeVar


T = TypeVar("T")


class RNGBase(ABC):
    """Draws used by board generation."""

    @abstractmethod
    def random(self) -> float:
        """Return random float in [0, 1)."""
        pass

    @abstractmethod
    def choice(self, options: Sequence[T]) -> T:
        """Return one element, uniformly."""
        pass

    def chance(self, probability: float) -> bool:
        """True with the given probability."""
        return self.random() < probability


class ProductionRNG(RNGBase):
    """Unseeded RNG backed by the OS entropy source."""

    def __init__(self):
        self._rng = random.SystemRandom()

    def random(self) -> float:
        return self._rng.random()

    def choice(self, options: Sequence[T]) -> T:
        return self._rng.choice(options)


class SeededRNG(RNGBase):
    """
    Deterministic RNG for tests and replays.

    The same seed yields the same sequence of offline boards.
    """

    def __init__(self, seed: int):
        self._rng = random.Random(seed)
        self.seed = seed

    def random(self) -> float:
        return self._rng.random()

    def choice(self, options: Sequence[T]) -> T:
        return self._rng.choice(options)
