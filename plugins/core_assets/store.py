# plugins/core_assets/store.py

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

import aiofiles
from pydantic import ValidationError

from .contracts import Asset, Manifest, ManifestStoreInterface, MANIFEST_VERSION
from .layout import AssetLayout
from .scanner import FolderScanner

logger = logging.getLogger(__name__)


class ManifestStore(ManifestStoreInterface):
    """
    Owns manifest.json. The manifest is only ever replaced as a whole: assets are
    rebuilt by a full scan on every regeneration, and the file is written to a
    temporary sibling first and then renamed over the old one.

    The store itself does not serialize callers; mutations reach it through the
    single-worker task queue.
    """
    def __init__(self, layout: AssetLayout, scanner: Optional[FolderScanner] = None):
        self.layout = layout
        self.scanner = scanner or FolderScanner(layout)
        self._current: Optional[Manifest] = None

    @property
    def manifest_path(self):
        return self.layout.manifest_path

    @property
    def current(self) -> Optional[Manifest]:
        """The manifest most recently loaded or persisted by this store."""
        return self._current

    def ensure_layout(self) -> None:
        for folder in (self.layout.preview_folder, self.layout.default_models_folder):
            path = self.layout.abs(folder)
            if not path.is_dir():
                path.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created asset folder: {path}")

    @staticmethod
    def default_manifest() -> Manifest:
        return Manifest(version=MANIFEST_VERSION, preview_base_url="", assets=[])

    async def load(self) -> Manifest:
        path = self.manifest_path
        if not path.is_file():
            logger.debug(f"No manifest at {path}; using defaults.")
            manifest = self.default_manifest()
        else:
            try:
                async with aiofiles.open(path, mode='r', encoding='utf-8') as f:
                    raw = json.loads(await f.read())
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning(f"Manifest at {path} could not be decoded, using defaults: {e}")
                raw = None
            manifest = self._from_raw(raw, path)
        self._current = manifest
        return manifest

    def _from_raw(self, raw, path) -> Manifest:
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning(f"Manifest at {path} is not a JSON object, using defaults.")
            return self.default_manifest()
        try:
            return Manifest.model_validate(raw)
        except ValidationError as e:
            # 资产列表会在下一次重新生成时整体替换，这里只需保住 previewBaseUrl
            preview_base_url = raw.get("previewBaseUrl")
            if not isinstance(preview_base_url, str):
                preview_base_url = ""
            logger.warning(
                f"Manifest at {path} does not match the schema, keeping only previewBaseUrl: {e}"
            )
            return Manifest(version=MANIFEST_VERSION, preview_base_url=preview_base_url, assets=[])

    async def scan(self) -> List[Asset]:
        return await asyncio.to_thread(self.scanner.scan_all)

    async def regenerate(self) -> Manifest:
        assets = await self.scan()
        previous = await self.load()

        manifest = Manifest(
            version=MANIFEST_VERSION,
            updated=datetime.now(timezone.utc),
            # previewBaseUrl 一旦设置就保留，只在为空时填默认值
            preview_base_url=previous.preview_base_url or self.layout.preview_base_url,
            assets=assets,
        )
        await self.persist(manifest)
        logger.info(f"Manifest regenerated: {len(assets)} assets -> {self.manifest_path}")
        return manifest

    async def persist(self, manifest: Manifest) -> None:
        path = self.manifest_path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
        try:
            async with aiofiles.open(tmp_path, mode='w', encoding='utf-8') as f:
                await f.write(manifest.to_json())
            await asyncio.to_thread(os.replace, tmp_path, path)
        except Exception:
            # 写入失败时不留下半截的临时文件；异常照常向上传播
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        self._current = manifest
        logger.debug(f"Persisted manifest ({len(manifest.assets)} assets) to {path}")
