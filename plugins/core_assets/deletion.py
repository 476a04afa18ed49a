# plugins/core_assets/deletion.py

import asyncio
import logging
import posixpath
from typing import List, Optional

from backend.core.contracts import BackgroundTaskManager
from backend.core.tasks import run_serialized

from .contracts import AssetNotFoundError, AssetType, DeletionResult, ManifestStoreInterface
from .layout import AssetLayout
from .sandbox import PathSandbox
from . import naming

logger = logging.getLogger(__name__)


class DeletionCoordinator:
    """
    Deletes a primary asset file together with its companions.

    Order: texture companions (models only), the dedicated preview, the primary
    file, then manifest regeneration. Companions that do not exist are skipped.
    Nothing is rolled back if a later step fails.
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

    async def delete(self, relative: str) -> DeletionResult:
        # 词法检查在排队之前完成，越界路径不会触碰文件系统
        normalized = self.sandbox.normalize(relative)
        return await run_serialized(self._task_manager, self._delete, normalized)

    async def _delete(self, relative: str) -> DeletionResult:
        target = self.sandbox.resolve(relative)
        if not await asyncio.to_thread(target.is_file):
            raise AssetNotFoundError("File not found")

        result = DeletionResult(file=relative)
        for companion in self.companions(relative):
            path = self.sandbox.resolve(companion)
            if await asyncio.to_thread(path.is_file):
                await asyncio.to_thread(path.unlink)
                result.removed.append(companion)
                logger.info(f"Deleted companion {companion}")

        await asyncio.to_thread(target.unlink)
        result.removed.append(relative)
        logger.info(f"Deleted asset {relative}")

        await self.store.regenerate()
        return result

    def companions(self, relative: str) -> List[str]:
        """Candidate companion paths for a primary file, whether or not they exist."""
        folder, filename = posixpath.split(relative)
        name, _ = naming.split_name(filename)
        candidates: List[str] = []

        if self.layout.is_model(filename):
            for ext in self.layout.image_exts:
                candidates.append(posixpath.join(folder, naming.texture_filename(name, ext)))

        preview = self.expected_preview(relative)
        if preview:
            candidates.append(preview)
        return candidates

    def expected_preview(self, relative: str) -> Optional[str]:
        """Preview path derived from where the file sits: model root, special folder, skin folders."""
        name, _ = naming.split_name(relative)
        parts = relative.split("/")

        if parts[0] == self.layout.model_root and len(parts) >= 3:
            weapon = self.layout.weapon_for_model_folder(relative)
            key = weapon.value if weapon else parts[1].lower()
            filename = naming.preview_filename(AssetType.MODEL, name, key)
        elif relative.startswith(self.layout.special_folder + "/"):
            filename = naming.preview_filename(AssetType.SPECIAL, name)
        else:
            weapon = self.layout.weapon_for_skin_folder(relative)
            if weapon is None:
                return None
            filename = naming.preview_filename(AssetType.SKIN, name, weapon)
        return f"{self.layout.preview_folder}/{filename}"
