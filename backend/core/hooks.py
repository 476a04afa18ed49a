# backend/core/hooks.py
import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, TypeVar

from backend.core.contracts import HookManager as HookManagerInterface, Container

logger = logging.getLogger(__name__)

T = TypeVar('T')

HookCallable = Callable[..., Awaitable[Any]]


@dataclass(order=True)
class HookImplementation:
    """封装一个钩子实现及其元数据。"""
    priority: int
    func: HookCallable = field(compare=False)
    plugin_name: str = field(compare=False, default="<unknown>")


class HookManager(HookManagerInterface):
    """
    负责注册和调度所有钩子实现。

    钩子函数按参数名从共享上下文中取值：一个声明了 `container` 参数的钩子
    会自动收到容器，声明了 `app` 的钩子会收到 FastAPI 应用，依此类推。
    """
    def __init__(self, container: Container):
        self._hooks: Dict[str, List[HookImplementation]] = defaultdict(list)
        self._shared_context: Dict[str, Any] = {
            "container": container,
            "hook_manager": self,
        }
        logger.info("HookManager initialized.")

    @property
    def hook_names(self) -> List[str]:
        return list(self._hooks.keys())

    def add_shared_context(self, name: str, service: Any) -> None:
        if name in self._shared_context:
            logger.warning(f"Overwriting shared context for hooks: '{name}'")
        self._shared_context[name] = service

    def add_implementation(
        self,
        hook_name: str,
        implementation: HookCallable,
        priority: int = 10,
        plugin_name: str = "<core>"
    ):
        if not asyncio.iscoroutinefunction(implementation):
            raise TypeError(f"Hook implementation for '{hook_name}' must be an async function.")

        self._hooks[hook_name].append(
            HookImplementation(priority=priority, func=implementation, plugin_name=plugin_name)
        )
        # 优先级从小到大
        self._hooks[hook_name].sort()
        logger.debug(f"Registered hook '{hook_name}' from plugin '{plugin_name}' with priority {priority}.")

    @staticmethod
    def _select_kwargs(func: HookCallable, context: Dict[str, Any], skip_first: bool = False) -> Dict[str, Any]:
        params = list(inspect.signature(func).parameters.values())
        if skip_first:
            params = params[1:]
        return {p.name: context[p.name] for p in params if p.name in context}

    async def trigger(self, hook_name: str, **kwargs: Any) -> None:
        """通知型钩子：并发执行所有实现，忽略返回值，单个实现的失败只记录日志。"""
        implementations = self._hooks.get(hook_name)
        if not implementations:
            return

        context = {**self._shared_context, **kwargs}
        results = await asyncio.gather(
            *(impl.func(**self._select_kwargs(impl.func, context)) for impl in implementations),
            return_exceptions=True
        )
        for impl, result in zip(implementations, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Error in NOTIFICATION hook '{hook_name}' from plugin '{impl.plugin_name}': {result}",
                    exc_info=result
                )

    async def filter(self, hook_name: str, data: T, **kwargs: Any) -> T:
        """过滤型钩子：按优先级依次处理 `data`，失败的实现被跳过。"""
        implementations = self._hooks.get(hook_name)
        if not implementations:
            return data

        context = {**self._shared_context, **kwargs}
        current = data
        for impl in implementations:
            try:
                current = await impl.func(current, **self._select_kwargs(impl.func, context, skip_first=True))
            except Exception as e:
                logger.error(
                    f"Error in FILTER hook '{hook_name}' from plugin '{impl.plugin_name}'. Skipping. Error: {e}",
                    exc_info=e
                )
        return current
