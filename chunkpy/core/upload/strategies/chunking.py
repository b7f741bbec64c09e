"""
Chunking strategies for file uploads.

Implements Strategy Pattern for different chunking algorithms.
"""
from abc import ABC, abstractmethod
from typing import List, Tuple

from ..models import DEFAULT_CHUNK_SIZE, ChunkInfo
from ...utils import ceil_div


class BaseChunkingStrategy(ABC):
    """Abstract base class for chunking strategies."""

    @abstractmethod
    def calculate_chunks(self, file_size: int) -> List[Tuple[int, int]]:
        """Calculate chunk boundaries."""
        pass

    def chunk_count(self, file_size: int) -> int:
        """Number of chunks for a file of ``file_size`` bytes."""
        return len(self.calculate_chunks(file_size))


class FixedSizeChunkingStrategy(BaseChunkingStrategy):
    """
    Fixed-size chunking strategy.

    Every chunk is ``chunk_size`` bytes except the last, which holds the
    remainder: ``file_size - chunk_size * (count - 1)``.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize with chunk size.

        Args:
            chunk_size: Size of each chunk in bytes
        """
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self.chunk_size = chunk_size

    def chunk_count(self, file_size: int) -> int:
        """ceil(file_size / chunk_size), without building the list."""
        if file_size < 0:
            raise ValueError("File size cannot be negative")
        return ceil_div(file_size, self.chunk_size)

    def calculate_chunks(self, file_size: int) -> List[Tuple[int, int]]:
        """
        Calculate fixed-size chunk boundaries.

        Args:
            file_size: Total file size in bytes

        Returns:
            List of (start, end) tuples
        """
        if file_size < 0:
            raise ValueError("File size cannot be negative")
        return [
            (start, min(start + self.chunk_size, file_size))
            for start in range(0, file_size, self.chunk_size)
        ]

    def chunk_info(self, index: int, file_size: int) -> ChunkInfo:
        """Byte range of chunk ``index`` without materializing the others."""
        if not 0 <= index < self.chunk_count(file_size):
            raise IndexError(f"Chunk index {index} out of range")
        start = index * self.chunk_size
        return ChunkInfo(index=index, start=start, end=min(start + self.chunk_size, file_size))
