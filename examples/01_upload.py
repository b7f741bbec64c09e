"""
Upload a file in resumable chunks
"""
import asyncio
from chunkpy import UploadClient, UploadConfig, setup_logging


async def main():
    setup_logging()

    async with UploadClient("http://localhost:8787") as client:

        # Simple upload (99 MiB chunks)
        metadata = await client.upload("movie.mp4")
        print(f"Uploaded: {metadata}")

        # Upload with progress callback
        def on_progress(progress):
            print(
                f"Progress: {progress.percentage:.1f}% "
                f"(chunk {progress.current_chunk}/{progress.total_chunks})"
            )

        metadata = await client.upload("trailer.mp4", on_progress=on_progress)
        print(f"Uploaded: {metadata}")

    # Smaller chunks and a more patient retry policy
    config = UploadConfig(chunk_size=16 * 1024 * 1024, max_retries=5, retry_delay=2.0)
    async with UploadClient("http://localhost:8787", upload_config=config) as client:
        metadata = await client.upload("episode.mkv", name="S01E01.mkv")
        print(f"Uploaded: {metadata}")


if __name__ == "__main__":
    asyncio.run(main())
