"""
Pause, resume and cancel an upload from another task
"""
import asyncio
from chunkpy import (
    AsyncAPIClient,
    APIConfig,
    UploadController,
    LocalSourceFile,
    CancellationError
)


async def main():
    config = APIConfig(base_url="http://localhost:8787")

    async with AsyncAPIClient(config) as api:
        async with LocalSourceFile("movie.mp4") as source:
            controller = UploadController(
                source,
                api,
                on_progress=lambda p: print(f"{p.percentage:.1f}%"),
                on_chunk_complete=lambda done, total: print(f"Chunk {done}/{total} done"),
                on_error=lambda e: print(f"Stopped: {e}")
            )

            upload = asyncio.create_task(controller.start())

            # Pause takes effect before the next chunk
            await asyncio.sleep(5)
            controller.pause()
            print(f"Status: {controller.status.value}")

            await asyncio.sleep(5)
            controller.resume()

            # Cancel aborts the chunk request in flight
            await asyncio.sleep(5)
            controller.cancel()

            try:
                await upload
            except CancellationError:
                snapshot = controller.get_state()
                print(f"Cancelled at chunk {snapshot.current_chunk_index}, state: {snapshot.to_json()}")


if __name__ == "__main__":
    asyncio.run(main())
