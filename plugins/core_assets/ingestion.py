# plugins/core_assets/ingestion.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import aiofiles

from backend.core.contracts import BackgroundTaskManager
from backend.core.tasks import run_serialized

from .contracts import (
    AssetType, AssetValidationError, IngestionResult, ManifestStoreInterface, Weapon
)
from .layout import AssetLayout
from .multipart import MultipartForm, MultipartPart
from .sandbox import PathSandbox, safe_filename
from . import naming

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedWrite:
    relative: str
    data: bytes


@dataclass(frozen=True)
class PlannedRemoval:
    """Removes a file if it exists. Used for companions the new upload supersedes."""
    relative: str


PlannedStep = Union[PlannedWrite, PlannedRemoval]


class IngestionPipeline:
    """
    Turns decoded upload forms into files under the asset root.

    Each upload is handled in two phases. `plan_*` validates the form and
    computes every target path without touching the filesystem; `_apply` then
    writes the files in order (removing texture variants a new texture
    supersedes) and regenerates the manifest, as a single job on the mutation
    queue. A failure during `_apply` leaves already-written files
    in place.
    """
    def __init__(
        self,
        layout: AssetLayout,
        store: ManifestStoreInterface,
        task_manager: Optional[BackgroundTaskManager] = None
    ):
        self.layout = layout
        self.store = store
        self.sandbox = PathSandbox(layout.root)
        self._task_manager = task_manager

    # --- 公开的上传操作 ---

    async def upload_skin(self, form: MultipartForm) -> IngestionResult:
        writes, result = self.plan_skin(form)
        await self._run(writes, regenerate=True)
        return result

    async def upload_model(self, form: MultipartForm) -> IngestionResult:
        writes, result = self.plan_model(form)
        await self._run(writes, regenerate=True)
        return result

    async def upload_special(self, form: MultipartForm) -> IngestionResult:
        writes, result = self.plan_special(form)
        await self._run(writes, regenerate=True)
        return result

    async def save_preview(self, form: MultipartForm) -> IngestionResult:
        writes, result = self.plan_preview(form)
        await self._run(writes, regenerate=True)
        return result

    async def upload_raw(self, form: MultipartForm) -> IngestionResult:
        """Plain upload into any folder inside the root. Does not regenerate the manifest."""
        writes, result = self.plan_raw(form)
        await self._run(writes, regenerate=False)
        return result

    # --- 校验与路径规划（不触碰文件系统） ---

    def plan_skin(self, form: MultipartForm) -> Tuple[List[PlannedStep], IngestionResult]:
        weapon_text, file_part = form.text("weapon"), form.file("file")
        if weapon_text is None or file_part is None:
            raise AssetValidationError("Missing weapon or file")
        weapon = self._weapon(weapon_text, self.layout.skin_folders)
        filename = self._primary_filename(file_part, self.layout.image_exts, AssetType.SKIN)

        folder = self.layout.skin_folders[weapon]
        name, _ = naming.split_name(filename)
        writes = [PlannedWrite(f"{folder}/{filename}", file_part.data)]
        preview = self._preview_write(form.field("preview"), AssetType.SKIN, name, weapon)
        if preview:
            writes.append(preview)
        return self._checked(writes), IngestionResult(
            file=writes[0].relative, preview=preview.relative if preview else None
        )

    def plan_model(self, form: MultipartForm) -> Tuple[List[PlannedStep], IngestionResult]:
        weapon_text, model_part = form.text("weapon"), form.file("model")
        if weapon_text is None or model_part is None:
            raise AssetValidationError("Missing weapon or model file")
        weapon = self._weapon(weapon_text, self.layout.model_folders)
        filename = self._primary_filename(model_part, self.layout.model_exts, AssetType.MODEL)

        folder = self.layout.model_folders[weapon]
        name, _ = naming.split_name(filename)
        writes = [PlannedWrite(f"{folder}/{filename}", model_part.data)]
        result = IngestionResult(file=writes[0].relative)

        texture_part = form.file("texture")
        if texture_part is not None:
            _, tex_ext = naming.split_name(safe_filename(texture_part.filename))
            if tex_ext.lower() not in self.layout.image_exts:
                raise AssetValidationError(
                    f"Unsupported texture type '{tex_ext}'; expected one of {', '.join(self.layout.image_exts)}"
                )
            # 其它扩展名的旧贴图会在扫描时抢先匹配，同一任务中一并移除
            for ext in self.layout.image_exts:
                if ext != tex_ext.lower():
                    writes.append(PlannedRemoval(f"{folder}/{naming.texture_filename(name, ext)}"))
            texture = PlannedWrite(f"{folder}/{naming.texture_filename(name, tex_ext.lower())}", texture_part.data)
            writes.append(texture)
            result.texture = texture.relative

        preview = self._preview_write(form.field("preview"), AssetType.MODEL, name, weapon)
        if preview:
            writes.append(preview)
            result.preview = preview.relative
        return self._checked(writes), result

    def plan_special(self, form: MultipartForm) -> Tuple[List[PlannedStep], IngestionResult]:
        file_part = form.file("file")
        if file_part is None:
            raise AssetValidationError("Missing file")
        filename = self._primary_filename(file_part, self.layout.image_exts, AssetType.SPECIAL)

        name, _ = naming.split_name(filename)
        writes = [PlannedWrite(f"{self.layout.special_folder}/{filename}", file_part.data)]
        preview = self._preview_write(form.field("preview"), AssetType.SPECIAL, name)
        if preview:
            writes.append(preview)
        return self._checked(writes), IngestionResult(
            file=writes[0].relative, preview=preview.relative if preview else None
        )

    def plan_preview(self, form: MultipartForm) -> Tuple[List[PlannedStep], IngestionResult]:
        type_text, name, preview_part = form.text("type"), form.text("name"), form.field("preview")
        if type_text is None or not name or preview_part is None or not preview_part.data:
            raise AssetValidationError("Missing type, name, or preview")
        try:
            asset_type = AssetType(type_text)
        except ValueError:
            raise AssetValidationError(f"Invalid type: {type_text}")
        if safe_filename(name) != name:
            raise AssetValidationError(f"Invalid name: {name!r}")

        weapon: Optional[Weapon] = None
        if asset_type is not AssetType.SPECIAL:
            folders = self.layout.skin_folders if asset_type is AssetType.SKIN else self.layout.model_folders
            weapon = self._weapon(form.text("weapon") or "", folders)

        preview = self._preview_write(preview_part, asset_type, name, weapon)
        return self._checked([preview]), IngestionResult(preview=preview.relative)

    def plan_raw(self, form: MultipartForm) -> Tuple[List[PlannedStep], IngestionResult]:
        category, file_part = form.text("category"), form.file("file")
        if not category or file_part is None:
            raise AssetValidationError("Missing fields")
        folder = self.sandbox.normalize(category)
        relative = f"{folder}/{safe_filename(file_part.filename)}" if folder != "." else safe_filename(file_part.filename)
        writes = [PlannedWrite(relative, file_part.data)]
        return self._checked(writes), IngestionResult(file=relative)

    # --- 执行 ---

    async def _run(self, writes: List[PlannedStep], regenerate: bool) -> None:
        await run_serialized(self._task_manager, self._apply, writes, regenerate)

    async def _apply(self, writes: List[PlannedStep], regenerate: bool) -> None:
        for write in writes:
            target = self.sandbox.resolve(write.relative)
            if isinstance(write, PlannedRemoval):
                if await asyncio.to_thread(target.is_file):
                    await asyncio.to_thread(target.unlink)
                    logger.info(f"Removed superseded {write.relative}")
                continue
            await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
            async with aiofiles.open(target, mode='wb') as f:
                await f.write(write.data)
            logger.info(f"Wrote {write.relative} ({len(write.data)} bytes)")
        if regenerate:
            await self.store.regenerate()

    # --- 辅助 ---

    @staticmethod
    def _weapon(raw: str, folders: Dict[Weapon, str]) -> Weapon:
        try:
            weapon = Weapon(raw)
        except ValueError:
            raise AssetValidationError(f"Invalid weapon: {raw}")
        if weapon not in folders:
            raise AssetValidationError(f"Invalid weapon: {raw}")
        return weapon

    @staticmethod
    def _primary_filename(part: MultipartPart, allowed_exts, asset_type: AssetType) -> str:
        filename = safe_filename(part.filename)
        _, ext = naming.split_name(filename)
        if ext.lower() not in allowed_exts:
            raise AssetValidationError(
                f"Unsupported file type '{ext}' for {asset_type.value}; expected one of {', '.join(allowed_exts)}"
            )
        return filename

    def _preview_write(
        self,
        part: Optional[MultipartPart],
        asset_type: AssetType,
        name: str,
        weapon: Optional[Weapon] = None
    ) -> Optional[PlannedWrite]:
        # 空的预览部分视为未提供
        if part is None or not part.data:
            return None
        filename = naming.preview_filename(asset_type, name, weapon)
        return PlannedWrite(f"{self.layout.preview_folder}/{filename}", part.data)

    def _checked(self, writes: List[PlannedStep]) -> List[PlannedStep]:
        # 在任何写入之前确认所有目标都在根目录内
        for write in writes:
            self.sandbox.resolve(write.relative)
        return writes
