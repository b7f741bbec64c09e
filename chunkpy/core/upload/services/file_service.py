"""
File validation and reading services.

Single Responsibility: Each class handles one specific task.
"""
from pathlib import Path
from typing import Tuple, Optional, Union
import mimetypes

import aiofiles

from ...logging import get_logger

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def guess_content_type(name: str) -> str:
    """Guess a MIME type from a file name."""
    content_type, _ = mimetypes.guess_type(name)
    return content_type or DEFAULT_CONTENT_TYPE


class FileValidator:
    """
    Validates files before upload.

    Responsibilities:
    - Check file existence
    - Verify file is not a directory
    - Get file size
    """

    def validate(self, file_path: Union[str, Path]) -> Tuple[Path, int]:
        """
        Validate a file for upload.

        Args:
            file_path: Path to the file

        Returns:
            Tuple of (validated Path, file size in bytes)

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If path is not a regular file
        """
        path = Path(file_path) if isinstance(file_path, str) else file_path

        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        if not path.is_file():
            raise ValueError(f"Path is not a file: {path}")

        file_size = path.stat().st_size

        return path, file_size

    def validate_size(self, file_size: int, max_size: Optional[int] = None) -> None:
        """
        Validate file size.

        Args:
            file_size: File size in bytes
            max_size: Optional maximum allowed size

        Raises:
            ValueError: If file exceeds max size
        """
        if max_size and file_size > max_size:
            raise ValueError(
                f"File size {file_size} exceeds maximum {max_size}"
            )


class LocalSourceFile:
    """
    Source file on the local disk.

    Uses aiofiles for non-blocking I/O. The handle is opened on the first
    slice and kept until close(), so each chunk costs one seek and one read;
    only the requested slice is ever held in memory.

    Example:
        >>> async with LocalSourceFile("movie.mp4") as source:
        ...     controller = UploadController(source, client)
        ...     await controller.start()
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        name: Optional[str] = None,
        content_type: Optional[str] = None
    ):
        """
        Initialize source file.

        Args:
            file_path: Path to an existing regular file
            name: Name reported to the server (defaults to the file name)
            content_type: MIME type (guessed from the name if omitted)
        """
        self._path, self._size = FileValidator().validate(file_path)
        self._name = name or self._path.name
        self._content_type = content_type or guess_content_type(self._name)
        self._file_handle = None
        self._logger = get_logger('chunkpy.upload.file')

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return self._size

    @property
    def content_type(self) -> str:
        return self._content_type

    async def open(self) -> None:
        """Open file for reading. Called implicitly by slice()."""
        if self._file_handle is None:
            self._file_handle = await aiofiles.open(self._path, 'rb')

    async def close(self) -> None:
        """Close the file handle if open."""
        if self._file_handle is not None:
            await self._file_handle.close()
            self._file_handle = None

    async def slice(self, start: int, end: int) -> bytes:
        """
        Read bytes ``[start, end)``.

        Raises:
            ValueError: If the range is outside the file
            OSError: If the file is shorter than expected (changed on disk)
        """
        if not 0 <= start <= end <= self._size:
            raise ValueError(f"Invalid range {start}-{end} for file of {self._size} bytes")

        await self.open()
        await self._file_handle.seek(start)
        data = await self._file_handle.read(end - start)

        if len(data) != end - start:
            raise OSError(
                f"Short read from {self._path}: wanted {end - start} bytes at {start}, got {len(data)}"
            )

        self._logger.debug(f"Read chunk: {start}-{end} ({len(data)} bytes)")
        return data

    async def __aenter__(self) -> 'LocalSourceFile':
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class BytesSourceFile:
    """
    Source file held in memory.

    Useful for:
    - Unit testing
    - Uploading generated content
    """

    def __init__(self, data: bytes, name: str = 'upload.bin', content_type: Optional[str] = None):
        self._data = bytes(data)
        self._name = name
        self._content_type = content_type or guess_content_type(name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def content_type(self) -> str:
        return self._content_type

    async def slice(self, start: int, end: int) -> bytes:
        """Return bytes ``[start, end)``."""
        if not 0 <= start <= end <= len(self._data):
            raise ValueError(f"Invalid range {start}-{end} for file of {len(self._data)} bytes")
        return self._data[start:end]
