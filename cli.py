# cli.py
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv

from plugins.core_assets.config import DEVELOPMENT, PRODUCTION, AssetServerConfig
from plugins.core_assets.contracts import AssetPipelineError
from plugins.core_assets.pipeline import AssetPipeline

app = typer.Typer(name="kiln", help="Kiln asset server command-line interface")


def _build_pipeline(roots: List[Path], production: bool) -> AssetPipeline:
    config = AssetServerConfig(
        environment=PRODUCTION if production else DEVELOPMENT,
        mount=os.getenv("KILN_MOUNT", "/assets"),
        watch_roots=[str(r) for r in roots],
    )
    try:
        return AssetPipeline(config=config)
    except AssetPipelineError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command("compile")
def compile_asset(
    path: str = typer.Argument(..., help="Logical asset path, e.g. css/site.css."),
    root: List[Path] = typer.Option(..., "--root", "-r", help="Watch root directory. Repeat for more roots."),
    production: bool = typer.Option(False, "--production", help="Compile in static (production) mode."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to this file instead of stdout."),
):
    """
    Resolves and compiles a single asset, writing the resulting bytes.
    """
    pipeline = _build_pipeline(root, production)
    try:
        asset = asyncio.run(pipeline.require_asset(path))
    except AssetPipelineError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if output is None:
        sys.stdout.buffer.write(asset.content)
        sys.stdout.flush()
        return

    output.write_bytes(asset.content)
    typer.secho(f"Wrote {asset.length} bytes to {output} ({asset.checksum}).", fg=typer.colors.GREEN, err=True)


@app.command("url")
def asset_url(
    path: str = typer.Argument(..., help="Logical asset path."),
    root: List[Path] = typer.Option(..., "--root", "-r", help="Watch root directory. Repeat for more roots."),
):
    """
    Prints the fingerprinted URL a production server would hand out for PATH.
    """
    pipeline = _build_pipeline(root, production=True)
    try:
        url = asyncio.run(pipeline.asset_url(path, fingerprint=True))
    except AssetPipelineError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(url)


@app.command("serve")
def serve(
    host: str = typer.Option(None, "--host", help="Bind address. Defaults to $KILN_HOST or 127.0.0.1."),
    port: int = typer.Option(None, "--port", help="Bind port. Defaults to $KILN_PORT or 8000."),
    reload: bool = typer.Option(False, "--reload", help="Restart the server when Python sources change."),
):
    """
    Runs the asset server with uvicorn. Configuration is read from the environment and .env.
    """
    import uvicorn
    uvicorn.run(
        "kiln.main:app",
        host=host or os.getenv("KILN_HOST", "127.0.0.1"),
        port=port or int(os.getenv("KILN_PORT", "8000")),
        reload=reload,
    )


def main():
    load_dotenv()
    app()


if __name__ == "__main__":
    main()
