# plugins/core_export/service.py

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel

from backend.core.contracts import BackgroundTaskManager
from backend.core.tasks import run_serialized

logger = logging.getLogger(__name__)

COMMIT_MESSAGE_PREFIX = "Update store assets - "


class ExportResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class GitExportService:
    """
    Publishes the asset tree with `git add .`, `git commit`, `git push`.

    Commands run in order in the asset root and stop at the first failure.
    Failures are returned as an ExportResult carrying the command's own output;
    this service never raises for a failed git command.
    """
    def __init__(self, root: Path, task_manager: Optional[BackgroundTaskManager] = None, git: str = "git"):
        self.root = Path(root)
        self.git = git
        self._task_manager = task_manager

    @staticmethod
    def commit_message(today: Optional[datetime] = None) -> str:
        today = today or datetime.now(timezone.utc)
        return f"{COMMIT_MESSAGE_PREFIX}{today.date().isoformat()}"

    def commands(self, message: str) -> List[List[str]]:
        return [
            [self.git, "add", "."],
            [self.git, "commit", "-m", message],
            [self.git, "push"],
        ]

    async def export(self) -> ExportResult:
        return await run_serialized(self._task_manager, self._export)

    async def _export(self) -> ExportResult:
        message = self.commit_message()
        for argv in self.commands(message):
            returncode, stdout, stderr = await self._run(argv)
            if returncode != 0:
                error = (stderr or stdout).strip() or f"'{' '.join(argv)}' exited with status {returncode}"
                logger.warning(f"Export stopped at '{' '.join(argv[1:3])}': {error}")
                return ExportResult(success=False, error=error)
            logger.debug(f"'{' '.join(argv)}' succeeded")
        logger.info(f"Asset tree pushed: {message}")
        return ExportResult(success=True, message=message)

    async def _run(self, argv: Sequence[str]) -> Tuple[int, str, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self.root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            # git 不在 PATH 中，或资产根目录不存在
            return 127, "", str(e)
        stdout, stderr = await process.communicate()
        return (
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
