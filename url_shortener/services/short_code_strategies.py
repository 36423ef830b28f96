"""
Short code generation strategies for URL shortener.
Uses Strategy Pattern to allow different generation algorithms.
"""

import secrets
import string
from abc import ABC, abstractmethod

ALPHABET = string.ascii_letters + string.digits


class ShortCodeStrategy(ABC):
    """Abstract base class for short code generation strategies"""

    @abstractmethod
    def generate(self, length: int) -> str:
        """
        Generate a candidate short code.

        Args:
            length: Number of characters in the code

        Returns:
            A candidate code. Uniqueness is not guaranteed; the allocator
            checks it against the store.
        """
        pass


class RandomShortCodeStrategy(ShortCodeStrategy):
    """
    Random generation strategy.
    Draws each character uniformly from the 62-character alphanumeric
    alphabet using the operating system's CSPRNG.

    Pros: Unpredictable, stateless
    Cons: Collisions possible, caller must check the store
    """

    def __init__(self, characters: str = ALPHABET):
        self.characters = characters

    def generate(self, length: int) -> str:
        if length < 1:
            raise ValueError(f"length must be positive, got {length}")
        return "".join(secrets.choice(self.characters) for _ in range(length))
