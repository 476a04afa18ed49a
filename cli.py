# cli.py
import asyncio
import json
import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from plugins.core_assets.layout import AssetLayout
from plugins.core_assets.store import ManifestStore

app = typer.Typer(name="haze-store", help="Haze Store Manager Command-Line Interface")


def _layout(root: Optional[Path], manifest: Optional[Path]) -> AssetLayout:
    load_dotenv()
    if root is None and manifest is None:
        return AssetLayout.from_env()
    return AssetLayout.for_root(
        root or os.getenv("HAZE_ASSET_ROOT", "."),
        manifest_path=manifest or os.getenv("HAZE_MANIFEST_PATH") or None,
        preview_base_url=os.getenv("HAZE_PREVIEW_BASE_URL") or None,
    )


RootOption = typer.Option(None, "--root", "-r", help="Asset root. Defaults to $HAZE_ASSET_ROOT or the current directory.")
ManifestOption = typer.Option(None, "--manifest", "-m", help="Manifest path. Defaults to <root>/manifest.json.")


@app.command("serve")
def serve(
    host: str = typer.Option(None, "--host", help="Bind address. Defaults to $HAZE_HOST or 127.0.0.1."),
    port: int = typer.Option(None, "--port", "-p", help="Port. Defaults to $HAZE_PORT or 3456."),
    root: Optional[Path] = RootOption,
):
    """
    Starts the HTTP server.
    """
    load_dotenv()
    if root is not None:
        os.environ["HAZE_ASSET_ROOT"] = str(root)

    # 延迟导入：backend.main 在导入时就会创建应用
    from backend.main import run
    run(host=host, port=port)


@app.command("scan")
def scan(
    root: Optional[Path] = RootOption,
    as_json: bool = typer.Option(False, "--json", help="Print the scan result as JSON."),
):
    """
    Lists the assets found on disk without touching the manifest.
    """
    store = ManifestStore(_layout(root, None))
    assets = asyncio.run(store.scan())

    if as_json:
        typer.echo(json.dumps([a.model_dump(mode="json", exclude_none=True) for a in assets], indent=2))
        return
    for asset in assets:
        typer.echo(f"{asset.id:<40} {asset.file}")
    typer.secho(f"{len(assets)} assets found under {store.layout.root}", fg=typer.colors.BLUE)


@app.command("regenerate")
def regenerate(
    root: Optional[Path] = RootOption,
    manifest: Optional[Path] = ManifestOption,
):
    """
    Rescans the asset folders and rewrites the manifest.
    """
    store = ManifestStore(_layout(root, manifest))
    try:
        store.ensure_layout()
        result = asyncio.run(store.regenerate())
    except OSError as e:
        typer.secho(f"🔥 Failed to regenerate the manifest: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho(f"✅ Wrote {len(result.assets)} assets to {store.manifest_path}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
