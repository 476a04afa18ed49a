# backend/core/tasks.py

import asyncio
import logging
from typing import Any, Callable, Coroutine, List, Optional

from backend.core.contracts import BackgroundTaskManager as BackgroundTaskManagerInterface

logger = logging.getLogger(__name__)


class BackgroundTaskManager(BackgroundTaskManagerInterface):
    """
    基于 asyncio.Queue 的任务队列。

    - `submit_task` 投递后即返回（fire-and-forget），失败只记录日志。
    - `run_task` 投递后等待任务完成，返回其结果或在调用方重新抛出其异常。

    以 max_workers=1 启动时，所有任务严格按投递顺序串行执行。
    资产树的每一次 "写文件 → 重新生成清单 → 持久化" 都走这条单消费者队列，
    并发请求因此不会交错写入。
    """
    def __init__(self, max_workers: int = 1):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._max_workers = max_workers
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        if self._is_running:
            logger.warning("BackgroundTaskManager is already running.")
            return
        logger.info(f"正在启动 {self._max_workers} 个后台工作者...")
        for i in range(self._max_workers):
            self._workers.append(asyncio.create_task(self._worker(f"worker-{i}")))
        self._is_running = True

    async def stop(self) -> None:
        if not self._is_running:
            return
        logger.info("正在停止后台工作者...")
        # 先把已经排队的任务做完
        await self._queue.join()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        self._is_running = False
        logger.info("所有后台工作者已安全停止。")

    def submit_task(self, coro_func: Callable[..., Coroutine], *args: Any, **kwargs: Any) -> None:
        if not self._is_running:
            logger.error("无法提交任务：后台任务管理器尚未启动。")
            return
        self._queue.put_nowait((coro_func, args, kwargs, None))
        logger.debug(f"任务 '{coro_func.__name__}' 已提交到后台队列。")

    async def run_task(self, coro_func: Callable[..., Coroutine], *args: Any, **kwargs: Any) -> Any:
        if not self._is_running:
            raise RuntimeError("BackgroundTaskManager is not running.")
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((coro_func, args, kwargs, future))
        logger.debug(f"任务 '{coro_func.__name__}' 已排队，等待执行结果。")
        return await future

    async def _worker(self, name: str) -> None:
        logger.debug(f"后台工作者 '{name}' 已启动。")
        while True:
            try:
                coro_func, args, kwargs, future = await self._queue.get()
            except asyncio.CancelledError:
                logger.debug(f"后台工作者 '{name}' 正在关闭。")
                break

            try:
                result = await coro_func(*args, **kwargs)
            except asyncio.CancelledError:
                self._settle(future, exc=asyncio.CancelledError())
                self._queue.task_done()
                raise
            except Exception as e:
                if future is None:
                    logger.exception(f"工作者 '{name}' 在执行任务 '{coro_func.__name__}' 时遇到错误。")
                self._settle(future, exc=e)
            else:
                self._settle(future, result=result)
            self._queue.task_done()

    @staticmethod
    def _settle(future: Optional[asyncio.Future], result: Any = None, exc: Optional[BaseException] = None) -> None:
        # 调用方可能已经放弃等待（请求被取消）
        if future is None or future.done():
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(result)


async def run_serialized(
    task_manager: Optional[BackgroundTaskManagerInterface],
    coro_func: Callable[..., Coroutine],
    *args: Any,
    **kwargs: Any
) -> Any:
    """
    在任务队列中执行 `coro_func` 并等待结果。
    队列不存在或尚未启动时（单元测试、命令行）直接在当前协程中执行。
    """
    if task_manager is not None and task_manager.is_running:
        return await task_manager.run_task(coro_func, *args, **kwargs)
    return await coro_func(*args, **kwargs)
