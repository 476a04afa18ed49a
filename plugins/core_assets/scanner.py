# plugins/core_assets/scanner.py

import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .contracts import Asset, AssetType, Weapon
from .layout import AssetLayout
from . import naming

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScannedFile:
    file: str       # sandbox-relative, e.g. "Models/AR/AK.glb"
    name: str       # base name without extension, e.g. "AK"
    size: int


class FolderScanner:
    """
    Discovers assets by folder convention. Read-only: it lists the configured
    category folders, filters by extension and derives companion textures and
    previews from the naming convention.

    Listing order is sorted by file name so that "first match wins" rules are
    stable, but callers should treat the result as a set.
    """
    def __init__(self, layout: AssetLayout):
        self.layout = layout

    def scan_folder(self, folder: str, extensions: Iterable[str]) -> List[ScannedFile]:
        """Qualifying files directly inside `folder`. A missing folder yields nothing."""
        abs_folder = self.layout.abs(folder)
        if not abs_folder.is_dir():
            return []

        allowed = {ext.lower() for ext in extensions}
        found: List[ScannedFile] = []
        with os.scandir(abs_folder) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                if not entry.is_file():
                    continue
                base, ext = os.path.splitext(entry.name)
                if ext.lower() not in allowed:
                    continue
                found.append(ScannedFile(
                    file=f"{folder}/{entry.name}",
                    name=base,
                    size=entry.stat().st_size,
                ))
        return found

    def scan_all(self) -> List[Asset]:
        assets: List[Asset] = []
        seen: Dict[str, str] = {}

        def add(asset: Asset) -> None:
            if asset.id in seen:
                logger.warning(
                    f"Duplicate asset id '{asset.id}': keeping '{seen[asset.id]}', skipping '{asset.file}'"
                )
                return
            seen[asset.id] = asset.file
            assets.append(asset)

        for weapon, folder in self.layout.skin_folders.items():
            for f in self.scan_folder(folder, self.layout.image_exts):
                add(self._skin(weapon, f))

        for f in self.scan_folder(self.layout.special_folder, self.layout.image_exts):
            add(self._special(f))

        for weapon, folder in self.layout.model_folders.items():
            for f in self.scan_folder(folder, self.layout.model_exts):
                add(self._model(weapon, folder, f))

        logger.debug(f"Scan found {len(assets)} assets under {self.layout.root}")
        return assets

    # --- 单个类别的资产构建 ---

    def _skin(self, weapon: Weapon, f: ScannedFile) -> Asset:
        preview = self._dedicated_preview(AssetType.SKIN, f.name, weapon)
        return Asset(
            id=naming.asset_stem(AssetType.SKIN, f.name, weapon),
            type=AssetType.SKIN,
            weapon=weapon,
            name=naming.display_name(AssetType.SKIN, f.name, weapon),
            description=naming.description(AssetType.SKIN, f.name, weapon),
            file=f.file,
            preview=preview or f.file,
            size=f.size,
        )

    def _special(self, f: ScannedFile) -> Asset:
        preview = self._dedicated_preview(AssetType.SPECIAL, f.name)
        return Asset(
            id=naming.asset_stem(AssetType.SPECIAL, f.name),
            type=AssetType.SPECIAL,
            name=naming.display_name(AssetType.SPECIAL, f.name),
            description=naming.description(AssetType.SPECIAL, f.name),
            file=f.file,
            preview=preview or f.file,
            size=f.size,
        )

    def _model(self, weapon: Weapon, folder: str, f: ScannedFile) -> Asset:
        texture = self._companion(folder, naming.texture_filename(f.name, ""))
        # 预览优先级: Previews/ 中的专用预览 > 模型目录中的同名图片 > 无
        preview = (
            self._dedicated_preview(AssetType.MODEL, f.name, weapon)
            or self._companion(folder, f.name)
        )
        return Asset(
            id=naming.asset_stem(AssetType.MODEL, f.name, weapon),
            type=AssetType.MODEL,
            weapon=weapon,
            name=naming.display_name(AssetType.MODEL, f.name, weapon),
            description=naming.description(AssetType.MODEL, f.name, weapon),
            file=f.file,
            texture=texture,
            preview=preview,
            size=f.size,
        )

    def _dedicated_preview(self, asset_type: AssetType, name: str, weapon: Optional[Weapon] = None) -> Optional[str]:
        relative = f"{self.layout.preview_folder}/{naming.preview_filename(asset_type, name, weapon)}"
        return relative if self.layout.abs(relative).is_file() else None

    def _companion(self, folder: str, stem: str) -> Optional[str]:
        """First `<folder>/<stem><image ext>` that exists, in allowlist order."""
        for ext in self.layout.image_exts:
            relative = f"{folder}/{stem}{ext}"
            if self.layout.abs(relative).is_file():
                return relative
        return None
