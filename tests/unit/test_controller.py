"""
Unit tests for UploadController.

Drives the controller against an in-process fake server: lifecycle,
retries, pause/resume, cancellation and resuming from exported state.
"""
import asyncio

import aiohttp
import pytest

from chunkpy.core.api import APIError
from chunkpy.core.exceptions import (
    CancellationError,
    ChunkTransferError,
    FinalizeError,
    MalformedResponseError,
    SessionError,
    UploadStateError
)
from chunkpy.core.upload import (
    UploadController,
    UploadConfig,
    UploadStatus,
    UploadSnapshot,
    BytesSourceFile
)

KIB = 1024


async def settle():
    """Let other tasks run until they block."""
    for _ in range(10):
        await asyncio.sleep(0)


class TokenBlindTransport:
    """
    Transport that never looks at the cancel token.

    Stands in for a request already on the wire when cancel() is called:
    it finishes normally, or with ``error`` once the server answered.
    """

    def __init__(self, server, error=None):
        self.config = server.config
        self._server = server
        self._error = error

    async def post_json(self, endpoint, payload, cancel_token=None):
        return await self._server.post_json(endpoint, payload)

    async def post_multipart(self, endpoint, fields, file_field, file_name, content, cancel_token=None):
        data = await self._server.post_multipart(endpoint, fields, file_field, file_name, content)
        if self._error is not None and int(fields['offset']) > 0:
            raise self._error
        return data


@pytest.fixture
def source(payload):
    return BytesSourceFile(payload, name='clip.mp4')


@pytest.fixture
def controller(source, server, fast_config, recorder):
    return UploadController(source, server, fast_config, **recorder.callbacks())


class TestHappyPath:
    """Uploads that succeed."""

    @pytest.mark.asyncio
    async def test_uploads_all_bytes_in_order(self, controller, server, payload):
        """Test every byte arrives, chunk by chunk."""
        metadata = await controller.start()

        assert bytes(server.received) == payload
        assert server.accepted == [(0, 4 * KIB), (4 * KIB, 4 * KIB), (8 * KIB, 2 * KIB)]
        assert metadata['id'] == 'video-1'
        assert controller.status is UploadStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failing_final_progress_handler_still_completes(self, controller, recorder):
        """Test a progress handler raising at 100% cannot suppress the complete event."""
        def explode(progress):
            if progress.percentage == 100.0:
                raise RuntimeError("display gone")

        controller.on('progress', explode)

        with pytest.raises(RuntimeError, match="display gone"):
            await controller.start()

        assert controller.status is UploadStatus.COMPLETED
        assert len(recorder.completed) == 1
        assert recorder.errors == []

    @pytest.mark.asyncio
    async def test_session_and_finalize_payloads(self, controller, server):
        """Test the session request describes the file and finalize names the session."""
        await controller.start()

        assert server.create_payloads == [
            {'filename': 'clip.mp4', 'totalSize': 10 * KIB, 'contentType': 'video/mp4'}
        ]
        assert server.finalize_payloads == [{'uploadId': 'upload-123'}]
        assert controller.upload_id == 'upload-123'

    @pytest.mark.asyncio
    async def test_status_sequence(self, controller):
        """Test the controller walks the lifecycle in order."""
        statuses = []
        controller.on('status', statuses.append)

        await controller.start()

        assert statuses == [
            UploadStatus.NEGOTIATING,
            UploadStatus.TRANSFERRING,
            UploadStatus.FINALIZING,
            UploadStatus.COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_callbacks(self, controller, recorder):
        """Test chunk callbacks fire per chunk and complete fires once."""
        await controller.start()

        assert recorder.chunks == [(1, 3), (2, 3), (3, 3)]
        assert len(recorder.completed) == 1
        assert recorder.errors == []

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_100_only_when_done(self, controller, recorder):
        """Test percentages never drop and reach 100 only after finalize."""
        await controller.start()

        percentages = [p.percentage for p in recorder.progress]
        assert percentages == sorted(percentages)
        assert percentages[0] == pytest.approx(40.0)
        assert percentages[-1] == 100.0
        assert all(p < 100.0 for p in percentages[:-1])

        # All bytes acknowledged, still waiting on finalize
        before_finalize = recorder.progress[-2]
        assert before_finalize.uploaded_bytes == 10 * KIB
        assert before_finalize.is_complete

    @pytest.mark.asyncio
    async def test_zero_byte_file(self, server, fast_config, recorder):
        """Test an empty file opens a session, sends nothing and finalizes."""
        controller = UploadController(
            BytesSourceFile(b'', name='empty.bin'), server, fast_config, **recorder.callbacks()
        )
        assert controller.total_chunks == 0
        assert controller.get_progress().percentage == 0.0

        await controller.start()

        assert server.attempts == []
        assert len(server.finalize_payloads) == 1
        assert recorder.chunks == []
        assert recorder.progress[-1].percentage == 100.0

    @pytest.mark.asyncio
    async def test_250_mib_layout_scaled(self, server, recorder):
        """Test the 99/99/52 chunk layout, scaled from MiB to KiB."""
        data = b'x' * (250 * KIB)
        controller = UploadController(
            BytesSourceFile(data, name='movie.mp4'),
            server,
            UploadConfig(chunk_size=99 * KIB, retry_delay=0.0),
            **recorder.callbacks()
        )

        server.fail_chunk(99 * KIB, APIError(503), APIError(503))

        await controller.start()

        assert [size for _, size in server.accepted] == [99 * KIB, 99 * KIB, 52 * KIB]
        assert server.attempts.count(99 * KIB) == 3
        assert recorder.chunks == [(1, 3), (2, 3), (3, 3)]
        assert len(recorder.completed) == 1
        assert recorder.errors == []
        assert controller.state.uploaded_bytes == 250 * KIB


class TestFailures:
    """Retries and terminal failures."""

    @pytest.mark.asyncio
    async def test_transient_chunk_failures_are_retried(self, controller, server, payload):
        """Test a chunk that fails twice still lands."""
        server.fail_chunk(4 * KIB, APIError(503), aiohttp.ClientError("connection reset"))

        await controller.start()

        assert server.attempts == [0, 4 * KIB, 4 * KIB, 4 * KIB, 8 * KIB]
        assert bytes(server.received) == payload

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_the_upload(self, controller, server, recorder):
        """Test four failed attempts end the upload without finalizing."""
        server.fail_chunk(4 * KIB, *[APIError(500) for _ in range(4)])

        with pytest.raises(ChunkTransferError) as exc_info:
            await controller.start()

        assert exc_info.value.attempts == 4
        assert exc_info.value.offset == 4 * KIB
        assert server.attempts.count(4 * KIB) == 4
        assert server.finalize_payloads == []
        assert controller.status is UploadStatus.FAILED
        assert recorder.errors == [exc_info.value]
        assert recorder.completed == []

    @pytest.mark.asyncio
    async def test_out_of_range_offset_is_rejected(self, controller, server):
        """Test an offset beyond the file is treated as a failed attempt."""
        server.report_offset(0, 10**9)

        with pytest.raises(ChunkTransferError):
            await controller.start()

        assert server.attempts == [0, 0, 0, 0]

    @pytest.mark.asyncio
    async def test_offset_behind_earlier_acknowledgement_is_rejected(self, controller, server, recorder):
        """Test the acknowledged byte count never moves backwards."""
        server.report_offset(4 * KIB, 9 * KIB)
        server.report_offset(8 * KIB, 8 * KIB + 1)

        with pytest.raises(ChunkTransferError) as exc_info:
            await controller.start()

        assert isinstance(exc_info.value.last_error, MalformedResponseError)
        assert [p.uploaded_bytes for p in recorder.progress] == [4 * KIB, 9 * KIB]
        assert server.attempts.count(8 * KIB) == 4
        assert controller.state.uploaded_bytes == 9 * KIB

    @pytest.mark.asyncio
    async def test_session_failure(self, controller, server, recorder):
        """Test a rejected session fails before any chunk is sent."""
        server.create_error = APIError(500, "database unavailable")

        with pytest.raises(SessionError, match="database unavailable"):
            await controller.start()

        assert server.attempts == []
        assert controller.status is UploadStatus.FAILED
        assert len(recorder.errors) == 1

    @pytest.mark.asyncio
    async def test_finalize_failure(self, controller, server, recorder):
        """Test a failed finalize never reports 100%."""
        server.finalize_error = APIError(500)

        with pytest.raises(FinalizeError):
            await controller.start()

        assert controller.status is UploadStatus.FAILED
        assert all(p.percentage < 100.0 for p in recorder.progress)
        assert recorder.completed == []


class TestReentry:
    """start() may only run once."""

    @pytest.mark.asyncio
    async def test_second_start_after_completion(self, controller, recorder):
        """Test start() on a finished controller raises and fires nothing."""
        await controller.start()

        with pytest.raises(UploadStateError):
            await controller.start()

        assert len(recorder.completed) == 1
        assert recorder.errors == []

    @pytest.mark.asyncio
    async def test_second_start_while_running(self, controller, server, payload):
        """Test a concurrent start() is refused and the first run finishes."""
        gate = server.gate_chunk(0)
        task = asyncio.create_task(controller.start())
        await asyncio.wait_for(server.entered(0).wait(), 1)

        with pytest.raises(UploadStateError):
            await controller.start()

        gate.set()
        await asyncio.wait_for(task, 1)
        assert bytes(server.received) == payload


class TestPauseResume:
    """Pausing between chunks."""

    @pytest.mark.asyncio
    async def test_pause_holds_next_chunk(self, controller, server, payload):
        """Test no chunk is sent while paused and the upload resumes in place."""
        paused = asyncio.Event()

        def on_chunk(done, total):
            if done == 1:
                controller.pause()
                paused.set()

        controller.on('chunk_complete', on_chunk)
        task = asyncio.create_task(controller.start())

        await asyncio.wait_for(paused.wait(), 1)
        await settle()
        assert controller.status is UploadStatus.PAUSED
        assert server.attempts == [0]
        assert not task.done()

        controller.resume()
        await asyncio.wait_for(task, 1)

        assert server.attempts == [0, 4 * KIB, 8 * KIB]
        assert bytes(server.received) == payload

    @pytest.mark.asyncio
    async def test_pause_after_last_chunk_holds_finalize(self, controller, server):
        """Test pausing after the final chunk delays finalization."""
        paused = asyncio.Event()

        def on_chunk(done, total):
            if done == total:
                controller.pause()
                paused.set()

        controller.on('chunk_complete', on_chunk)
        task = asyncio.create_task(controller.start())

        await asyncio.wait_for(paused.wait(), 1)
        await settle()
        assert server.finalize_payloads == []

        controller.resume()
        await asyncio.wait_for(task, 1)
        assert len(server.finalize_payloads) == 1

    @pytest.mark.asyncio
    async def test_pause_then_resume_matches_uninterrupted_run(self, source, server, fast_config):
        """Test pause() directly followed by resume() leaves the outcome unchanged."""
        plain_server = type(server)()
        plain = UploadController(source, plain_server, fast_config)
        expected = await plain.start()

        controller = UploadController(source, server, fast_config)

        def toggle(done, total):
            controller.pause()
            controller.resume()

        controller.on('chunk_complete', toggle)
        metadata = await controller.start()

        assert metadata == expected
        assert server.attempts == plain_server.attempts
        assert bytes(server.received) == bytes(plain_server.received)
        assert controller.state.uploaded_bytes == plain.state.uploaded_bytes
        assert controller.status is UploadStatus.COMPLETED

    def test_pause_before_start_is_ignored(self, controller):
        """Test pause() outside TRANSFERRING changes nothing."""
        controller.pause()
        assert controller.status is UploadStatus.CREATED

    def test_resume_when_not_paused_is_ignored(self, controller):
        """Test resume() outside PAUSED changes nothing."""
        controller.resume()
        assert controller.status is UploadStatus.CREATED


class TestCancel:
    """Cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_aborts_request_in_flight(self, controller, server, recorder):
        """Test cancel() stops a chunk request that is still waiting."""
        server.gate_chunk(4 * KIB)
        task = asyncio.create_task(controller.start())
        await asyncio.wait_for(server.entered(4 * KIB).wait(), 1)

        controller.cancel()

        with pytest.raises(CancellationError):
            await asyncio.wait_for(task, 1)

        assert controller.status is UploadStatus.CANCELLED
        assert server.accepted == [(0, 4 * KIB)]
        assert server.finalize_payloads == []
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], CancellationError)
        assert recorder.completed == []

    @pytest.mark.asyncio
    async def test_response_after_cancel_is_discarded(self, source, server, fast_config, recorder):
        """Test a chunk acknowledged after cancel() does not advance the state."""
        gate = server.gate_chunk(4 * KIB)
        controller = UploadController(source, TokenBlindTransport(server), fast_config, **recorder.callbacks())
        task = asyncio.create_task(controller.start())
        await asyncio.wait_for(server.entered(4 * KIB).wait(), 1)

        controller.cancel()
        gate.set()

        with pytest.raises(CancellationError):
            await asyncio.wait_for(task, 1)

        assert server.accepted == [(0, 4 * KIB), (4 * KIB, 4 * KIB)]
        assert controller.state.uploaded_bytes == 4 * KIB
        assert controller.get_state().current_chunk_index == 1
        assert recorder.chunks == [(1, 3)]
        assert server.finalize_payloads == []
        assert controller.status is UploadStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_failure_after_cancel_reports_cancellation(self, source, server, fast_config, recorder):
        """Test an error surfacing after cancel() ends the upload as cancelled, not failed."""
        gate = server.gate_chunk(4 * KIB)
        transport = TokenBlindTransport(server, error=RuntimeError("Session is closed"))
        controller = UploadController(source, transport, fast_config, **recorder.callbacks())
        task = asyncio.create_task(controller.start())
        await asyncio.wait_for(server.entered(4 * KIB).wait(), 1)

        controller.cancel()
        gate.set()

        with pytest.raises(CancellationError) as exc_info:
            await asyncio.wait_for(task, 1)

        assert isinstance(exc_info.value.__cause__, ChunkTransferError)
        assert controller.status is UploadStatus.CANCELLED
        assert controller.state.uploaded_bytes == 4 * KIB
        assert recorder.errors == [exc_info.value]
        assert recorder.completed == []

    @pytest.mark.asyncio
    async def test_cancel_while_paused(self, controller, server):
        """Test cancel() wakes a paused upload and ends it."""
        paused = asyncio.Event()

        def on_chunk(done, total):
            if done == 1:
                controller.pause()
                paused.set()

        controller.on('chunk_complete', on_chunk)
        task = asyncio.create_task(controller.start())
        await asyncio.wait_for(paused.wait(), 1)

        controller.cancel()

        with pytest.raises(CancellationError):
            await asyncio.wait_for(task, 1)
        assert server.attempts == [0]
        assert controller.status is UploadStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_interrupts_backoff(self, source, server, recorder):
        """Test cancel() does not wait out a retry delay."""
        controller = UploadController(
            source,
            server,
            UploadConfig(chunk_size=4 * KIB, max_retries=3, retry_delay=30.0),
            **recorder.callbacks()
        )
        server.fail_chunk(0, APIError(503))
        task = asyncio.create_task(controller.start())

        for _ in range(50):
            if server.attempts:
                break
            await asyncio.sleep(0)
        await settle()

        controller.cancel()

        with pytest.raises(CancellationError):
            await asyncio.wait_for(task, 1)
        assert server.attempts == [0]

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, controller, server, recorder):
        """Test a cancelled controller never opens a session."""
        controller.cancel()

        with pytest.raises(CancellationError):
            await controller.start()

        assert server.create_payloads == []
        assert controller.status is UploadStatus.CANCELLED
        assert len(recorder.errors) == 1

    @pytest.mark.asyncio
    async def test_cancel_after_completion_is_ignored(self, controller, recorder):
        """Test cancel() on a completed upload changes nothing."""
        await controller.start()

        controller.cancel()

        assert controller.status is UploadStatus.COMPLETED
        assert recorder.errors == []

    @pytest.mark.asyncio
    async def test_task_cancellation(self, controller, server, recorder):
        """Test cancelling the driving task marks the upload cancelled."""
        server.gate_chunk(0)
        task = asyncio.create_task(controller.start())
        await asyncio.wait_for(server.entered(0).wait(), 1)

        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert controller.status is UploadStatus.CANCELLED
        assert controller.cancel_token.is_cancelled
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], CancellationError)


class TestResumability:
    """Exporting and restoring state."""

    @pytest.mark.asyncio
    async def test_resume_in_new_controller(self, source, server, fast_config, payload, recorder):
        """Test an interrupted upload continues where it stopped."""
        first = UploadController(source, server, fast_config)
        first.on('chunk_complete', lambda done, total: first.cancel() if done == 1 else None)

        with pytest.raises(CancellationError):
            await first.start()

        snapshot = first.get_state()
        assert snapshot.upload_id == 'upload-123'
        assert snapshot.uploaded_bytes == 4 * KIB
        assert snapshot.current_chunk_index == 1

        second = UploadController(source, server, fast_config, **recorder.callbacks())
        second.restore_state(snapshot.to_dict())
        assert second.get_progress().percentage == pytest.approx(40.0)

        await second.start()

        assert len(server.create_payloads) == 1
        assert bytes(server.received) == payload
        assert recorder.chunks == [(2, 3), (3, 3)]
        assert second.status is UploadStatus.COMPLETED

    def test_get_state_before_start(self, controller):
        """Test a fresh controller exports an empty state."""
        snapshot = controller.get_state()

        assert snapshot.upload_id is None
        assert snapshot.uploaded_bytes == 0
        assert snapshot.current_chunk_index == 0
        assert snapshot.filename == 'clip.mp4'
        assert snapshot.total_size == 10 * KIB
        assert snapshot.chunk_size == 4 * KIB

    def _snapshot(self, **overrides):
        values = dict(
            upload_id='upload-123',
            uploaded_bytes=4 * KIB,
            current_chunk_index=1,
            filename='clip.mp4',
            total_size=10 * KIB,
            chunk_size=4 * KIB,
        )
        values.update(overrides)
        return UploadSnapshot(**values)

    @pytest.mark.parametrize('overrides', [
        {'upload_id': None},
        {'total_size': 11 * KIB},
        {'chunk_size': 8 * KIB},
        {'current_chunk_index': 4},
        {'uploaded_bytes': 11 * KIB},
    ])
    def test_restore_rejects_mismatched_state(self, controller, overrides):
        """Test snapshots that don't fit the source are refused."""
        with pytest.raises(UploadStateError):
            controller.restore_state(self._snapshot(**overrides))
        assert controller.upload_id is None

    def test_restore_twice(self, controller):
        """Test a controller restores at most once."""
        controller.restore_state(self._snapshot())

        with pytest.raises(UploadStateError):
            controller.restore_state(self._snapshot())

    @pytest.mark.asyncio
    async def test_restore_after_start(self, controller):
        """Test restore_state() on a started controller is refused."""
        await controller.start()

        with pytest.raises(UploadStateError):
            controller.restore_state(self._snapshot())

    def test_state_is_a_copy(self, controller):
        """Test mutating the returned state leaves the controller alone."""
        state = controller.state
        state.uploaded_bytes = 999

        assert controller.state.uploaded_bytes == 0
