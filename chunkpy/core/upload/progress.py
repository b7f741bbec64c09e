"""
Progress model.

Pure projection of UploadState onto a ProgressSnapshot; nothing is cached.
"""
import math

from .models import UploadState, UploadStatus, ProgressSnapshot

# Largest float below 100: reported while finalization is still pending
_PENDING_CEILING = math.nextafter(100.0, 0.0)


class ProgressModel:
    """Computes progress snapshots. Safe to call from progress callbacks."""

    @staticmethod
    def percentage(state: UploadState, total_bytes: int) -> float:
        """
        Percentage of bytes acknowledged.

        Exactly 100 only when the upload is COMPLETED, so a full byte count
        waiting on finalize reads just below 100.
        """
        if state.status is UploadStatus.COMPLETED:
            return 100.0
        if total_bytes <= 0:
            return 0.0
        return min(state.uploaded_bytes / total_bytes * 100, _PENDING_CEILING)

    @staticmethod
    def snapshot(state: UploadState, total_bytes: int, total_chunks: int) -> ProgressSnapshot:
        """
        Build a snapshot for ``state``.

        Args:
            state: Current upload state
            total_bytes: File size
            total_chunks: Number of chunks

        Returns:
            ProgressSnapshot
        """
        return ProgressSnapshot(
            uploaded_bytes=state.uploaded_bytes,
            total_bytes=total_bytes,
            percentage=ProgressModel.percentage(state, total_bytes),
            current_chunk=min(state.current_chunk_index + 1, total_chunks),
            chunks_complete=state.current_chunk_index,
            total_chunks=total_chunks,
            bytes_remaining=max(total_bytes - state.uploaded_bytes, 0),
            is_complete=state.uploaded_bytes >= total_bytes,
        )
