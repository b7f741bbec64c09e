"""
Resume an interrupted upload after the process restarts

Run it, interrupt it with Ctrl+C, run it again: the second run skips the
chunks the server already acknowledged.
"""
import asyncio
from chunkpy import UploadClient, SQLiteStateStore


async def main():
    with SQLiteStateStore("uploads") as store:

        # Pending uploads from previous runs
        for key in store.keys():
            snapshot = store.load(key)
            print(f"Pending: {snapshot.filename} at chunk {snapshot.current_chunk_index}")

        async with UploadClient("http://localhost:8787", state_store=store) as client:
            metadata = await client.upload(
                "movie.mp4",
                on_progress=lambda p: print(f"{p.percentage:.1f}%")
            )
            print(f"Uploaded: {metadata}")


if __name__ == "__main__":
    asyncio.run(main())
