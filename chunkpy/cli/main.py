"""ChunkPy CLI - Main commands."""
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    DownloadColumn,
    TransferSpeedColumn
)
from rich.table import Table

app = typer.Typer(
    name="chunkpy",
    help="Resumable chunked upload CLI",
    add_completion=False
)
console = Console()

MIB = 1024 * 1024


# State path: ~/.config/chunkpy/uploads.state
def get_state_path() -> Path:
    config_dir = Path.home() / ".config" / "chunkpy"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "uploads.state"


def run_async(coro):
    """Run async function."""
    return asyncio.run(coro)


def parse_headers(values: List[str]) -> dict:
    """Parse ``Name: value`` pairs given on the command line."""
    headers = {}
    for item in values or []:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected 'Name: value', got {item!r}", param_hint="--header")
        headers[name.strip()] = value.strip()
    return headers


def build_api_config(url: str, headers: dict, proxy: Optional[str] = None, insecure: bool = False):
    """Build the API configuration from command line options."""
    from chunkpy import APIConfig, ProxyConfig, SSLConfig

    return APIConfig(
        base_url=url,
        extra_headers=headers,
        proxy=ProxyConfig(url=proxy) if proxy else None,
        ssl=SSLConfig(verify=not insecure)
    )


@app.command()
def upload(
    file_path: Path = typer.Argument(..., help="Local file to upload", exists=True, dir_okay=False),
    url: str = typer.Option("http://localhost:8787", "--url", "-u", help="Server base URL"),
    name: str = typer.Option(None, "--name", "-n", help="File name reported to the server"),
    chunk_size: int = typer.Option(99, "--chunk-size", "-c", min=1, help="Chunk size in MiB"),
    max_retries: int = typer.Option(3, "--max-retries", min=0, help="Retries per chunk"),
    retry_delay: float = typer.Option(1.0, "--retry-delay", min=0.0, help="Base retry delay in seconds"),
    header: List[str] = typer.Option(None, "--header", "-H", help="Extra request header 'Name: value'"),
    proxy: str = typer.Option(None, "--proxy", help="HTTP(S) proxy URL"),
    insecure: bool = typer.Option(False, "--insecure", "-k", help="Skip TLS certificate verification"),
    state: Path = typer.Option(None, "--state", help="Resume state file"),
    no_resume: bool = typer.Option(False, "--no-resume", help="Start over even if state exists"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
):
    """Upload a file in resumable chunks."""
    from chunkpy import (
        UploadClient,
        UploadConfig,
        SQLiteStateStore,
        ProgressSnapshot,
        UploadException,
        CancellationError,
        setup_logging
    )

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
        setup_logging(logging.DEBUG)

    api_config = build_api_config(url, parse_headers(header), proxy, insecure)
    upload_config = UploadConfig(
        chunk_size=chunk_size * MIB,
        max_retries=max_retries,
        retry_delay=retry_delay
    )

    async def do_upload():
        with SQLiteStateStore(state or get_state_path()) as store:
            async with UploadClient(
                api_config=api_config,
                upload_config=upload_config,
                state_store=store
            ) as client:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    DownloadColumn(),
                    TransferSpeedColumn(),
                    console=console
                ) as progress:
                    task = progress.add_task(
                        f"Uploading {name or file_path.name}",
                        total=file_path.stat().st_size
                    )

                    def on_progress(p: ProgressSnapshot):
                        progress.update(task, completed=p.uploaded_bytes)

                    try:
                        return await client.upload(
                            file_path,
                            name=name,
                            on_progress=on_progress,
                            resume=not no_resume
                        )
                    except CancellationError:
                        console.print("[yellow]Upload cancelled; run again to resume[/yellow]")
                        raise typer.Exit(130)
                    except UploadException as e:
                        console.print(f"[red]Upload failed: {e}[/red]")
                        console.print("[dim]Progress is saved; run again to resume[/dim]")
                        raise typer.Exit(1)

    try:
        result = run_async(do_upload())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted; run again to resume[/yellow]")
        raise typer.Exit(130)

    console.print(f"[green]Uploaded {file_path.name}[/green]")
    for key, value in (result or {}).items():
        console.print(f"[bold]{key}:[/bold] {value}")


@app.command()
def status(
    state: Path = typer.Option(None, "--state", help="Resume state file"),
):
    """List interrupted uploads that can be resumed."""
    from chunkpy import SQLiteStateStore
    from chunkpy.core.utils import format_bytes

    with SQLiteStateStore(state or get_state_path()) as store:
        keys = store.keys()
        if not keys:
            console.print("[green]No pending uploads[/green]")
            return

        table = Table()
        table.add_column("File")
        table.add_column("Upload ID", style="dim")
        table.add_column("Chunk", justify="right")
        table.add_column("Uploaded", justify="right")
        table.add_column("Total", justify="right", style="cyan")

        for key in keys:
            snapshot = store.load(key)
            if snapshot is None:
                continue
            percent = snapshot.uploaded_bytes / snapshot.total_size * 100 if snapshot.total_size else 0.0
            table.add_row(
                snapshot.filename,
                snapshot.upload_id,
                str(snapshot.current_chunk_index),
                f"{format_bytes(snapshot.uploaded_bytes)} ({percent:.1f}%)",
                format_bytes(snapshot.total_size)
            )

        console.print(table)


@app.command()
def forget(
    file_path: Path = typer.Argument(..., help="File whose resume state to drop", exists=True, dir_okay=False),
    state: Path = typer.Option(None, "--state", help="Resume state file"),
):
    """Drop the resume state of a file so the next upload starts over."""
    from chunkpy import SQLiteStateStore, upload_key

    key = upload_key(str(file_path.resolve()), file_path.stat().st_size)
    with SQLiteStateStore(state or get_state_path()) as store:
        if not store.exists(key):
            console.print(f"[yellow]No pending upload for {file_path.name}[/yellow]")
            return
        store.delete(key)
    console.print(f"[green]Forgot pending upload of {file_path.name}[/green]")


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
