"""
模块加载器
负责扫描、加载模块并挂载路由，启动时调用模块生命周期钩子

约定：
- 模块目录 modules/{module_id}/
- 清单文件 {module_id}_manifest.py，导出 manifest
- 模型文件 {module_id}_models.py（可选）
- 路由文件 {module_id}_router.py，导出 router
"""

import importlib
import sys
import logging
from typing import Dict, List, Optional, Any, Callable, Awaitable
from dataclasses import dataclass, field
from pathlib import Path

from fastapi import FastAPI, APIRouter

from .config import get_settings
from .events import event_bus, Events, Event
from utils.timezone import utc_now

logger = logging.getLogger(__name__)
settings = get_settings()


# 确保backend目录在sys.path中，以便模块可以导入core等包
_backend_path = str(Path(__file__).parent.parent.absolute())
if _backend_path not in sys.path:
    sys.path.insert(0, _backend_path)


# 异步钩子函数类型
LifecycleHook = Callable[[], Awaitable[None]]


@dataclass
class ModuleManifest:
    """模块清单协议"""
    id: str                          # 唯一标识
    name: str                        # 显示名称
    version: str                     # 版本号
    description: str = ""            # 描述
    author: str = ""                 # 作者

    # 路由配置
    router_prefix: str = ""          # 路由前缀，如 /api/v1/photo-vault
    router: Optional[APIRouter] = None

    # 依赖声明
    dependencies: List[str] = field(default_factory=list)

    # 权限声明
    permissions: List[str] = field(default_factory=list)

    # 状态
    enabled: bool = True

    # 启动时执行（表创建后），必须幂等
    on_enable: Optional[LifecycleHook] = None


@dataclass
class LoadedModule:
    """已加载模块信息"""
    manifest: ModuleManifest
    path: Path
    loaded_at: Any = field(default_factory=utc_now)


class ModuleLoader:
    """模块加载器"""

    def __init__(self, app: Optional[FastAPI] = None, modules_dir: Optional[str] = None):
        self.app = app
        self.modules: Dict[str, LoadedModule] = {}
        if modules_dir:
            self.modules_path = Path(modules_dir)
        else:
            self.modules_path = Path(_backend_path) / settings.modules_dir

    def scan_modules(self) -> List[str]:
        """扫描模块目录"""
        if not self.modules_path.exists():
            logger.warning(f"模块目录不存在: {self.modules_path}")
            return []

        module_ids = []
        for item in sorted(self.modules_path.iterdir()):
            if item.is_dir() and not item.name.startswith("_"):
                if (item / f"{item.name}_manifest.py").exists():
                    module_ids.append(item.name)
                    logger.debug(f"发现模块: {item.name}")
        return module_ids

    def load_manifest(self, module_id: str) -> Optional[ModuleManifest]:
        """加载模块清单"""
        try:
            module = importlib.import_module(f"modules.{module_id}.{module_id}_manifest")
        except ImportError as e:
            logger.error(f"加载模块清单失败 {module_id}: {e}")
            return None

        manifest = getattr(module, "manifest", None)
        if manifest is None:
            logger.error(f"清单文件缺少manifest对象: {module_id}")
        return manifest

    def _sort_by_dependencies(self, manifests: Dict[str, ModuleManifest]) -> List[str]:
        """按依赖关系拓扑排序，确保依赖先加载"""
        in_degree = {mid: 0 for mid in manifests}
        dependents = {mid: [] for mid in manifests}
        for mid, manifest in manifests.items():
            for dep in manifest.dependencies:
                if dep in manifests:
                    in_degree[mid] += 1
                    dependents[dep].append(mid)

        sorted_ids = []
        queue = [mid for mid in in_degree if in_degree[mid] == 0]
        while queue:
            mid = queue.pop(0)
            sorted_ids.append(mid)
            for dependent in dependents[mid]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(sorted_ids) != len(manifests):
            circular = [mid for mid in manifests if mid not in sorted_ids]
            logger.warning(f"检测到循环依赖，涉及模块: {circular}")
            return list(manifests)
        return sorted_ids

    def load_module(self, module_id: str, manifest: ModuleManifest) -> bool:
        """加载单个模块：导入模型（注册表结构）并挂载路由"""
        if module_id in self.modules:
            return True

        if not manifest.enabled:
            logger.debug(f"模块已禁用: {module_id}")
            return False

        missing = [dep for dep in manifest.dependencies if dep not in self.modules]
        if missing:
            logger.error(f"模块 {module_id} 依赖未满足，缺失: {missing}")
            return False

        module_path = self.modules_path / module_id
        if (module_path / f"{module_id}_models.py").exists():
            importlib.import_module(f"modules.{module_id}.{module_id}_models")

        router_module = importlib.import_module(f"modules.{module_id}.{module_id}_router")
        router = getattr(router_module, "router", None)
        if router is None:
            logger.error(f"加载路由失败 {module_id}: 无法找到 router 对象")
            return False

        manifest.router = router
        if self.app is not None:
            prefix = manifest.router_prefix or f"/api/v1/{module_id}"
            self.app.include_router(router, prefix=prefix, tags=[manifest.name])
            logger.debug(f"注册路由成功: {prefix}")

        self.modules[module_id] = LoadedModule(manifest=manifest, path=module_path)
        return True

    def load_all(self) -> Dict[str, bool]:
        """加载所有模块"""
        manifests = {}
        for module_id in self.scan_modules():
            manifest = self.load_manifest(module_id)
            if manifest:
                manifests[module_id] = manifest

        results = {}
        for module_id in self._sort_by_dependencies(manifests):
            results[module_id] = self.load_module(module_id, manifests[module_id])
        return results

    async def run_enable_hooks(self):
        """
        运行模块启用钩子
        在数据库初始化后调用；钩子失败只记录日志，不阻止其他模块启动
        """
        for module_id, loaded in self.modules.items():
            hook = loaded.manifest.on_enable
            if hook is None:
                continue
            try:
                await hook()
                logger.debug(f"模块 {module_id} 的 on_enable 钩子执行成功")
            except Exception as e:
                logger.error(f"模块 {module_id} 的 on_enable 钩子执行失败: {e}")
                continue
            await event_bus.publish(Event(name=Events.MODULE_LOADED, source=module_id))

    def get_loaded_modules(self) -> List[ModuleManifest]:
        """获取已加载模块清单"""
        return [m.manifest for m in self.modules.values()]


# 全局加载器实例
module_loader: Optional[ModuleLoader] = None


def init_loader(app: FastAPI) -> ModuleLoader:
    """初始化模块加载器"""
    global module_loader
    module_loader = ModuleLoader(app)
    return module_loader


def get_module_loader() -> Optional[ModuleLoader]:
    """获取模块加载器"""
    return module_loader
