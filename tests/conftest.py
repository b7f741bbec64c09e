"""Pytest fixtures for ChunkPy tests."""
import asyncio
import os
import tempfile
from pathlib import Path

import pytest

from chunkpy.core.api import APIConfig, APIError
from chunkpy.core.upload import UploadConfig

KIB = 1024


class FakeUploadServer:
    """
    In-process stand-in for the upload server.

    Implements the transport interface the upload services use and keeps
    the bytes it accepted, so tests can check what actually arrived.
    """

    def __init__(self, upload_id='upload-123', metadata=None):
        self.config = APIConfig()
        self.upload_id = upload_id
        self.metadata = metadata or {'id': 'video-1', 'status': 'ready'}

        self.create_payloads = []
        self.finalize_payloads = []
        self.attempts = []          # offsets of every chunk request
        self.accepted = []          # (offset, size) of acknowledged chunks
        self.received = bytearray()

        self.create_error = None
        self.finalize_error = None
        self._chunk_failures = {}
        self._gates = {}
        self._entered = {}
        self._offset_override = {}
        self.closed = False

    # -- scripting helpers ---------------------------------------------

    def fail_chunk(self, offset, *errors):
        """Raise ``errors`` in order on the next requests for ``offset``."""
        self._chunk_failures.setdefault(offset, []).extend(errors)

    def gate_chunk(self, offset):
        """Hold the request for ``offset`` until the returned event is set."""
        gate = asyncio.Event()
        self._gates[offset] = gate
        self._entered[offset] = asyncio.Event()
        return gate

    def entered(self, offset):
        """Event set once the gated request for ``offset`` arrived."""
        return self._entered[offset]

    def report_offset(self, offset, value):
        """Answer the chunk at ``offset`` with a fixed cumulative offset."""
        self._offset_override[offset] = value

    # -- transport interface -------------------------------------------

    async def close(self):
        self.closed = True

    async def post_json(self, endpoint, payload, cancel_token=None):
        if endpoint == self.config.endpoints.create:
            self.create_payloads.append(payload)
            if self.create_error is not None:
                raise self.create_error
            return {'uploadId': self.upload_id}

        if endpoint == self.config.endpoints.finalize:
            self.finalize_payloads.append(payload)
            if self.finalize_error is not None:
                raise self.finalize_error
            return {'uploadId': payload['uploadId'], 'size': len(self.received), **self.metadata}

        raise APIError(404, f"Unknown endpoint {endpoint}")

    async def post_multipart(self, endpoint, fields, file_field, file_name, content, cancel_token=None):
        assert endpoint == self.config.endpoints.chunk
        assert fields['uploadId'] == self.upload_id
        offset = int(fields['offset'])
        self.attempts.append(offset)

        failures = self._chunk_failures.get(offset)
        if failures:
            raise failures.pop(0)

        gate = self._gates.get(offset)
        if gate is not None:
            self._entered[offset].set()
            if cancel_token is not None:
                await cancel_token.run(gate.wait())
            else:
                await gate.wait()

        if offset in self._offset_override:
            return {'offset': self._offset_override[offset]}

        assert offset == len(self.received), "chunks must arrive in order"
        self.received.extend(content)
        self.accepted.append((offset, len(content)))
        return {'offset': offset + len(content)}


class Recorder:
    """Collects callback invocations."""

    def __init__(self):
        self.progress = []
        self.chunks = []
        self.completed = []
        self.errors = []

    def callbacks(self):
        return {
            'on_progress': self.progress.append,
            'on_chunk_complete': lambda done, total: self.chunks.append((done, total)),
            'on_complete': self.completed.append,
            'on_error': self.errors.append,
        }


@pytest.fixture
def server():
    """Scriptable fake upload server."""
    return FakeUploadServer()


@pytest.fixture
def recorder():
    """Callback recorder."""
    return Recorder()


@pytest.fixture
def fast_config():
    """Small chunks and no real backoff delay."""
    return UploadConfig(chunk_size=4 * KIB, max_retries=3, retry_delay=0.0)


@pytest.fixture
def payload():
    """10 KiB of patterned bytes (3 chunks of 4 KiB)."""
    return bytes(i % 251 for i in range(10 * KIB))


@pytest.fixture
def temp_file(payload):
    """Temporary file holding ``payload``."""
    fd, path = tempfile.mkstemp(suffix='.mp4')
    os.write(fd, payload)
    os.close(fd)
    yield Path(path)
    os.unlink(path)
