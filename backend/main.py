"""
Portfolio 后台 - 主入口
基于FastAPI的微内核架构

- 请求日志中间件
- 安全响应头中间件
- 健康检查端点
- 标准化错误处理
- 模块生命周期管理
"""

import logging
import warnings
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SAWarning

from core.config import get_settings
from core.database import init_db, close_db
from core.loader import init_loader, get_module_loader
from core.events import event_bus, Events, Event
from core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from core.errors import register_exception_handlers, ErrorCode, ERROR_MESSAGES
from utils.storage import get_storage_manager

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s"
)
logger = logging.getLogger(__name__)

# 减少第三方库的日志输出
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("PIL").setLevel(logging.WARNING)

warnings.filterwarnings("ignore", category=SAWarning)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # ==================== 启动阶段 ====================
    logger.info(f"🚀 正在启动 {settings.app_name} v{settings.app_version}...")

    # 1. 初始化数据库（模块模型已在加载时注册）
    await init_db()

    # 2. 运行模块启用钩子（如创建默认相册）
    loader = get_module_loader()
    if loader:
        await loader.run_enable_hooks()

    # 3. 发布启动事件
    await event_bus.publish(Event(name=Events.SYSTEM_STARTUP, source="kernel"))
    logger.info(f"🎉 {settings.app_name} 启动完成!")

    yield

    # ==================== 关闭阶段 ====================
    logger.info("🛑 系统关闭中...")
    await event_bus.publish(Event(name=Events.SYSTEM_SHUTDOWN, source="kernel"))
    await close_db()
    logger.info("👋 系统已关闭")


# ==================== 创建应用 ====================
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="作品集网站后台：照片库与相册管理",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# ==================== 中间件配置（顺序重要，后添加的先执行） ====================

# 1. CORS 跨域配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制为具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# 2. 安全响应头中间件
app.add_middleware(SecurityHeadersMiddleware)

# 3. 请求日志中间件
app.add_middleware(
    RequestLoggingMiddleware,
    skip_paths=["/health", "/api/docs", "/api/redoc", "/api/openapi.json", settings.blob_public_base_url],
    slow_request_threshold=1.0  # 超过1秒的请求记录为慢请求
)


# ==================== 异常处理器 ====================
register_exception_handlers(app)


# 全局未捕获异常处理
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常捕获"""
    logger.error(f"未处理异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "code": ErrorCode.INTERNAL_ERROR,
            "message": ERROR_MESSAGES[ErrorCode.INTERNAL_ERROR],
            "data": None
        }
    )


# ==================== 注册系统路由 ====================
from routers import auth, health

app.include_router(auth.router)
app.include_router(health.router)

# 功能模块在导入时挂载（测试客户端不会触发 lifespan）
_loader = init_loader(app)
_results = _loader.load_all()
logger.info(f"✅ 已加载 {sum(1 for v in _results.values() if v)} 个模块")


# ==================== 静态文件配置 ====================
# 本地对象存储中的照片和缩略图
app.mount(
    settings.blob_public_base_url,
    StaticFiles(directory=str(get_storage_manager().upload_dir)),
    name="media"
)


@app.get("/api", include_in_schema=False)
async def api_info():
    """API 信息"""
    loader = get_module_loader()
    modules = loader.get_loaded_modules() if loader else []

    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/api/docs",
        "health": "/health",
        "modules": [
            {"id": m.id, "name": m.name, "version": m.version}
            for m in modules
        ]
    }


# ==================== 启动入口 ====================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
