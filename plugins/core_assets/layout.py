# plugins/core_assets/layout.py

import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .contracts import Weapon

# --- 文件夹扫描配置 (固定表) ---
SKIN_FOLDERS: Dict[Weapon, str] = {
    Weapon.AR: "AR",
    Weapon.AWP: "AWP",
    Weapon.SHOTGUN: "Shotgun",
    Weapon.SMG: "SMG",
}
MODEL_FOLDERS: Dict[Weapon, str] = {
    Weapon.AR: "Models/AR",
    Weapon.AWP: "Models/AWP",
    Weapon.SMG: "Models/SMG",
    Weapon.SHOTGUN: "Models/Shotgun",
}
SPECIAL_FOLDER = "Special"
MODEL_ROOT = "Models"
PREVIEW_FOLDER = "Previews"
DEFAULT_MODELS_FOLDER = "DefaultModels"

IMAGE_EXTS: Tuple[str, ...] = (".png", ".jpg", ".jpeg", ".webp")
MODEL_EXTS: Tuple[str, ...] = (".glb",)
PREVIEW_EXT = ".webp"

DEFAULT_PREVIEW_BASE_URL = "https://raw.githubusercontent.com/iydebu/haze-client-assets/main/"


class AssetLayout(BaseModel):
    """
    Where everything lives under the sandbox root. Folder values are
    sandbox-relative POSIX paths; they also become the `file` prefix of
    every discovered asset.
    """
    root: Path
    manifest_path: Path
    preview_base_url: str = DEFAULT_PREVIEW_BASE_URL
    skin_folders: Dict[Weapon, str] = Field(default_factory=lambda: dict(SKIN_FOLDERS))
    model_folders: Dict[Weapon, str] = Field(default_factory=lambda: dict(MODEL_FOLDERS))
    special_folder: str = SPECIAL_FOLDER
    model_root: str = MODEL_ROOT
    preview_folder: str = PREVIEW_FOLDER
    default_models_folder: str = DEFAULT_MODELS_FOLDER
    image_exts: Tuple[str, ...] = IMAGE_EXTS
    model_exts: Tuple[str, ...] = MODEL_EXTS

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_root(cls, root, manifest_path=None, preview_base_url: Optional[str] = None) -> "AssetLayout":
        root = Path(root).resolve()
        kwargs = {}
        if preview_base_url is not None:
            kwargs["preview_base_url"] = preview_base_url
        return cls(
            root=root,
            manifest_path=Path(manifest_path).resolve() if manifest_path else root / "manifest.json",
            **kwargs
        )

    @classmethod
    def from_env(cls) -> "AssetLayout":
        """
        HAZE_ASSET_ROOT       sandbox root (default: current directory)
        HAZE_MANIFEST_PATH    manifest file (default: <root>/manifest.json)
        HAZE_PREVIEW_BASE_URL default for an empty previewBaseUrl
        """
        return cls.for_root(
            os.getenv("HAZE_ASSET_ROOT", "."),
            manifest_path=os.getenv("HAZE_MANIFEST_PATH") or None,
            preview_base_url=os.getenv("HAZE_PREVIEW_BASE_URL") or None,
        )

    def abs(self, relative: str) -> Path:
        return self.root / relative

    @property
    def preview_dir(self) -> Path:
        return self.abs(self.preview_folder)

    def is_image(self, filename: str) -> bool:
        return os.path.splitext(filename)[1].lower() in self.image_exts

    def is_model(self, filename: str) -> bool:
        return os.path.splitext(filename)[1].lower() in self.model_exts

    def weapon_for_skin_folder(self, relative_file: str) -> Optional[Weapon]:
        return _match_prefix(self.skin_folders, relative_file)

    def weapon_for_model_folder(self, relative_file: str) -> Optional[Weapon]:
        return _match_prefix(self.model_folders, relative_file)


def _match_prefix(folders: Dict[Weapon, str], relative_file: str) -> Optional[Weapon]:
    for weapon, folder in folders.items():
        if relative_file.startswith(folder + "/"):
            return weapon
    return None
