"""Core building blocks of chunkpy."""
