# backend/container.py

import inspect
import logging
import threading
from typing import Any, Callable, Dict, List

from backend.core.contracts import Container as ContainerInterface

logger = logging.getLogger(__name__)


class Container(ContainerInterface):
    """
    依赖注入容器。
    服务以工厂函数注册，首次 resolve 时构建；单例会被缓存。
    工厂可以声明一个参数来接收容器本身，以便解析它自己的依赖。
    """
    def __init__(self):
        self._factories: Dict[str, Callable] = {}
        self._singletons: Dict[str, bool] = {}
        self._instances: Dict[str, Any] = {}
        # RLock: 工厂内部会递归调用 resolve
        self._lock = threading.RLock()
        self._resolving: List[str] = []

    def register(self, name: str, factory: Callable, singleton: bool = True) -> None:
        with self._lock:
            if name in self._factories:
                logger.warning(f"Overwriting service registration for '{name}'")
            self._factories[name] = factory
            self._singletons[name] = singleton
            self._instances.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._factories

    def resolve(self, name: str) -> Any:
        if name not in self._factories:
            raise ValueError(f"Service '{name}' not found in container.")

        with self._lock:
            if self._singletons[name] and name in self._instances:
                return self._instances[name]

            if name in self._resolving:
                chain = " -> ".join(self._resolving + [name])
                raise RuntimeError(f"Circular dependency detected: {chain}")

            self._resolving.append(name)
            try:
                instance = self._build(self._factories[name])
            finally:
                self._resolving.pop()

            if self._singletons[name]:
                self._instances[name] = instance
            logger.debug(f"Resolved service '{name}'. Singleton: {self._singletons[name]}")
            return instance

    def _build(self, factory: Callable) -> Any:
        # 工厂可以不接收容器参数，例如 `lambda: instance`
        try:
            takes_container = len(inspect.signature(factory).parameters) > 0
        except (TypeError, ValueError):
            takes_container = True
        return factory(self) if takes_container else factory()
