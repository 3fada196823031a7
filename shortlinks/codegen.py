"""Random short code generation.

Codes are drawn with nanoid's rejection-sampling algorithm, fed by an
injected random source so tests can pass a seeded ``random.Random``.
"""

import random
import secrets

from nanoid.method import method

from shortlinks.config import DEFAULT_ALPHABET

__all__ = ["ShortCodeGenerator"]


class ShortCodeGenerator:
    """Produce fixed-length codes drawn uniformly from an alphabet.

    The generator has no notion of uniqueness; the allocator checks every
    candidate against the store.

    Example:
        >>> generator = ShortCodeGenerator(length=6, rng=random.Random(42))
        >>> len(generator.generate())
        6
    """

    def __init__(
        self,
        length: int = 6,
        alphabet: str = DEFAULT_ALPHABET,
        rng: random.Random | None = None,
    ) -> None:
        if length <= 0:
            raise ValueError(f"length must be a positive integer, got {length!r}")
        if len(set(alphabet)) != len(alphabet) or len(alphabet) < 2:
            raise ValueError("alphabet must contain at least 2 unique characters")
        self.length = length
        self.alphabet = alphabet
        self._rng = rng if rng is not None else secrets.SystemRandom()

    @property
    def keyspace_size(self) -> int:
        return len(self.alphabet) ** self.length

    def _random_bytes(self, size: int) -> bytearray:
        return bytearray(self._rng.getrandbits(8) for _ in range(size))

    def generate(self) -> str:
        return method(self._random_bytes, self.alphabet, self.length)
