# backend/core/loader.py

import json
import logging
import importlib
import importlib.resources
import traceback
from typing import Dict, List, Optional

from backend.core.contracts import Container, HookManager, PluginRegisterFunc

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100


class PluginLoader:
    """
    发现 `plugins` 包下所有带 manifest.json 的子包，按 (priority, name) 排序后
    依次调用它们的 `register_plugin(container, hook_manager)`。
    """
    def __init__(self, container: Container, hook_manager: HookManager, package: str = "plugins"):
        self._container = container
        self._hook_manager = hook_manager
        self._package = package

    def load_plugins(self, enabled: Optional[List[str]] = None) -> List[str]:
        """
        加载插件并返回已注册插件的名称列表。
        `enabled` 不为空时只加载列出的插件（测试时用来组装精简的应用）。
        """
        # 此时日志系统可能还未配置（core_logging 本身也是插件），所以用 print
        print("\n--- Haze 插件系统：开始加载 ---")

        plugins = self._discover_plugins()
        if enabled is not None:
            plugins = [p for p in plugins if p["name"] in enabled]
        if not plugins:
            print("警告：未发现任何插件。")
            print("--- Haze 插件系统：加载完成 ---\n")
            return []

        plugins.sort(key=lambda p: (p["manifest"].get("priority", DEFAULT_PRIORITY), p["name"]))
        print("插件加载顺序已确定：")
        for i, p in enumerate(plugins, start=1):
            print(f"  {i}. {p['name']} (优先级: {p['manifest'].get('priority', DEFAULT_PRIORITY)})")

        for p in plugins:
            self._register(p)

        logger.info(f"所有插件均已加载并注册完毕: {[p['name'] for p in plugins]}")
        print("--- Haze 插件系统：加载完成 ---\n")
        return [p["name"] for p in plugins]

    def _discover_plugins(self) -> List[Dict]:
        discovered = []
        try:
            root = importlib.resources.files(self._package)
        except ModuleNotFoundError:
            return discovered

        for plugin_path in root.iterdir():
            if not plugin_path.is_dir() or plugin_path.name.startswith(('__', '.')):
                continue
            manifest_path = plugin_path / "manifest.json"
            if not manifest_path.is_file():
                continue
            try:
                manifest = json.loads(manifest_path.read_text(encoding='utf-8'))
            except json.JSONDecodeError as e:
                print(f"警告：跳过 manifest.json 无法解析的插件 '{plugin_path.name}': {e}")
                continue
            discovered.append({
                "name": manifest.get("name", plugin_path.name),
                "manifest": manifest,
                "import_path": f"{self._package}.{plugin_path.name}",
            })
        return discovered

    def _register(self, plugin_info: Dict) -> None:
        name, import_path = plugin_info["name"], plugin_info["import_path"]
        try:
            module = importlib.import_module(import_path)
            register_func: PluginRegisterFunc = getattr(module, "register_plugin")
            register_func(self._container, self._hook_manager)
        except Exception as e:
            print("\n" + "=" * 80)
            print(f"!!! 致命错误：加载插件 '{name}' ({import_path}) 失败 !!!")
            print("=" * 80)
            traceback.print_exc()
            print("=" * 80)
            # 插件之间存在依赖，一个失败就停止启动
            raise RuntimeError(f"无法加载插件 {name}") from e
