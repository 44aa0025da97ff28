"""Batching strategies for embedding requests.

A strategy decides how texts are grouped into provider requests. It never
reorders: concatenating the batches gives back the input sequence.
"""

from abc import ABC, abstractmethod


class BatchingStrategy(ABC):
    """Splits texts into request-sized batches."""

    @abstractmethod
    def batch(self, texts: list[str]) -> list[list[str]]:
        """Group texts into ordered batches.

        Args:
            texts: Texts to embed.

        Returns:
            Batches whose concatenation equals ``texts``.
        """
        ...


class FixedSizeBatchingStrategy(BatchingStrategy):
    """Batches of at most ``batch_size`` texts."""

    def __init__(self, batch_size: int) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.batch_size = batch_size

    def batch(self, texts: list[str]) -> list[list[str]]:
        return [
            texts[i : i + self.batch_size]
            for i in range(0, len(texts), self.batch_size)
        ]


class CharacterBudgetBatchingStrategy(BatchingStrategy):
    """Batches bounded by total character count.

    Approximates token-budget batching without a tokenizer. A single text
    longer than the budget gets a batch of its own.
    """

    def __init__(self, max_characters: int = 32_000) -> None:
        if max_characters <= 0:
            raise ValueError("max_characters must be positive")
        self.max_characters = max_characters

    def batch(self, texts: list[str]) -> list[list[str]]:
        batches: list[list[str]] = []
        current: list[str] = []
        size = 0
        for text in texts:
            if current and size + len(text) > self.max_characters:
                batches.append(current)
                current, size = [], 0
            current.append(text)
            size += len(text)
        if current:
            batches.append(current)
        return batches
