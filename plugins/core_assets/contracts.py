# plugins/core_assets/contracts.py

from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_VERSION = 3


# --- 1. 枚举 ---

class AssetType(str, Enum):
    SKIN = "skin"
    MODEL = "model"
    SPECIAL = "special"


class Weapon(str, Enum):
    AR = "ar"
    AWP = "awp"
    SHOTGUN = "shotgun"
    SMG = "smg"


# --- 2. 清单数据模型 ---

class Asset(BaseModel):
    """
    One discovered asset. Assets are never patched in place: every manifest
    regeneration rebuilds the full list from the folders on disk.
    """
    id: str
    type: AssetType
    weapon: Optional[Weapon] = None
    name: str
    description: str
    file: str
    texture: Optional[str] = None
    preview: Optional[str] = None
    size: int
    required: bool = False

    model_config = ConfigDict(frozen=True, use_enum_values=True)


class Manifest(BaseModel):
    """The persisted snapshot written to manifest.json."""
    version: int = MANIFEST_VERSION
    updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    preview_base_url: str = Field(default="", alias="previewBaseUrl")
    assets: List[Asset] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2) + "\n"

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class IngestionResult(BaseModel):
    """What an upload wrote, as sandbox-relative paths."""
    file: Optional[str] = None
    texture: Optional[str] = None
    preview: Optional[str] = None


class DeletionResult(BaseModel):
    file: str
    removed: List[str] = Field(default_factory=list)


# --- 3. 错误分类 ---

class AssetError(Exception):
    """Base class for failures the HTTP layer reports with a specific status."""
    status_code: int = 500


class AssetValidationError(AssetError):
    """Missing field, unknown weapon/type, bad extension, unsafe file name, missing boundary."""
    status_code = 400


class AssetNotFoundError(AssetError):
    status_code = 404


class SandboxViolationError(AssetError):
    """A path resolved outside the asset root."""
    status_code = 403


# --- 4. 服务接口 ---

class ManifestStoreInterface(ABC):
    @abstractmethod
    async def load(self) -> Manifest: raise NotImplementedError
    @abstractmethod
    async def regenerate(self) -> Manifest: raise NotImplementedError
    @abstractmethod
    async def persist(self, manifest: Manifest) -> None: raise NotImplementedError
    @abstractmethod
    async def scan(self) -> List[Asset]: raise NotImplementedError
