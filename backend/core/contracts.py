# backend/core/contracts.py

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Callable, Coroutine, TypeVar

# --- 平台核心服务接口 ---
# 插件只依赖这些接口，不直接导入 backend 中的具体实现。

T = TypeVar('T')

# 插件注册函数的标准签名
PluginRegisterFunc = Callable[['Container', 'HookManager'], None]


class Container(ABC):
    @abstractmethod
    def register(self, name: str, factory: Callable, singleton: bool = True) -> None: raise NotImplementedError
    @abstractmethod
    def resolve(self, name: str) -> Any: raise NotImplementedError
    @abstractmethod
    def has(self, name: str) -> bool: raise NotImplementedError


class HookManager(ABC):
    @abstractmethod
    def add_implementation(self, hook_name: str, implementation: Callable, priority: int = 10, plugin_name: str = "<unknown>"): raise NotImplementedError
    @abstractmethod
    async def trigger(self, hook_name: str, **kwargs: Any) -> None: raise NotImplementedError
    @abstractmethod
    async def filter(self, hook_name: str, data: T, **kwargs: Any) -> T: raise NotImplementedError


class BackgroundTaskManager(ABC):
    """
    Work queue owned by the platform. With a single worker it doubles as the
    serialization point for every operation that mutates the asset tree.
    """
    @abstractmethod
    def start(self) -> None: raise NotImplementedError
    @abstractmethod
    async def stop(self) -> None: raise NotImplementedError
    @abstractmethod
    def submit_task(self, coro_func: Callable[..., Coroutine], *args: Any, **kwargs: Any) -> None: raise NotImplementedError
    @abstractmethod
    async def run_task(self, coro_func: Callable[..., Coroutine], *args: Any, **kwargs: Any) -> Any: raise NotImplementedError
    @property
    @abstractmethod
    def is_running(self) -> bool: raise NotImplementedError

