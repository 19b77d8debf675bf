"""
系统配置管理
统一管理所有配置项，支持环境变量覆盖
"""

import logging
from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List, Optional
from urllib.parse import quote_plus

# 获取backend目录的绝对路径
BACKEND_DIR = Path(__file__).parent.parent.resolve()
ENV_FILE = BACKEND_DIR / ".env"


class Settings(BaseSettings):
    """系统配置"""

    # 应用信息
    app_name: str = "Portfolio Backend"
    app_version: str = "1.0.0"
    debug: bool = False

    # 数据库配置
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "portfolio"
    # 完整连接串（设置后覆盖上面的分项配置，测试环境使用 sqlite+aiosqlite）
    database_url: Optional[str] = None

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        encoded_user = quote_plus(self.db_user)
        encoded_pwd = quote_plus(self.db_password)
        return f"mysql+aiomysql://{encoded_user}:{encoded_pwd}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def db_is_sqlite(self) -> bool:
        return self.db_url.startswith("sqlite")

    # JWT令牌配置
    jwt_secret: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 12

    # 后台管理员账户（单管理员模型）
    admin_username: str = "admin"
    admin_password: str = "admin123"  # 首次启动后请立即修改

    # 文件存储（本地 Blob 存储根目录）
    upload_dir: str = "storage/uploads"
    blob_public_base_url: str = "/media"

    # 照片库配置
    photo_max_batch: int = 20  # 单次最多上传数量
    photo_max_file_size: int = 25 * 1024 * 1024  # 单张 25MB
    photo_allowed_types: List[str] = [
        "image/jpeg", "image/png", "image/gif",
        "image/webp", "image/heic", "image/heif"
    ]
    photo_folder_root: str = "portfolio/photos"
    photo_default_page_size: int = 36
    photo_max_page_size: int = 100
    blob_timeout_seconds: float = 60.0  # 单个 Blob 调用超时（秒）
    blob_bulk_delete_chunk: int = 100
    thumbnail_size: int = 400

    # 模块配置
    modules_dir: str = "modules"

    class Config:
        env_file = str(ENV_FILE)
        env_file_encoding = "utf-8"


_settings_instance: Optional[Settings] = None


def get_settings() -> Settings:
    """
    获取配置单例
    支持运行时重新加载
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()

        # 安全检查: 如果是生产环境且使用默认密钥，发出警告
        if not _settings_instance.debug and _settings_instance.jwt_secret == "your-secret-key-change-in-production":
            logging.getLogger("core.config").warning(
                "🚨 [安全警告] 您正在生产环境模式下使用默认的 JWT_SECRET！"
                "请立即在 .env 文件中配置 JWT_SECRET。"
            )
    return _settings_instance


def reload_settings():
    """
    重新加载配置
    """
    global _settings_instance
    _settings_instance = Settings()
    return _settings_instance
