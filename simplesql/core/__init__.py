"""
SimpleSQL 核心模块

- SimpleSQL: 断线自动重连的语句执行器
- ConnectionProfile: 连接配置
- Cursor / FetchMode: 结果游标和取数模式
- build_insert / build_update / build_delete: 参数化语句构建
- ConfigManager / CryptoManager: 加密保存的命名连接配置
- 异常体系: SimpleSQLError 及其子类
"""

from .config import ConfigManager
from .crypto import CryptoManager
from .cursor import Cursor, FetchMode
from .exceptions import (
    ConfigError,
    ConnectionError,
    CryptoError,
    CursorClosedError,
    DatabaseError,
    FatalDriverError,
    QueryError,
    RetriesExhaustedError,
    SimpleSQLError,
    TransientConnectionError,
    ValidationError,
)
from .executor import MAX_RETRIES, SimpleSQL
from .profile import ConnectionProfile
from .statements import build_delete, build_insert, build_update, normalize_params

__all__ = [
    # ==================== 执行器 ====================
    "SimpleSQL",
    "MAX_RETRIES",
    "ConnectionProfile",
    # ==================== 游标 ====================
    "Cursor",
    "FetchMode",
    # ==================== 语句构建 ====================
    "build_insert",
    "build_update",
    "build_delete",
    "normalize_params",
    # ==================== 配置管理 ====================
    "ConfigManager",
    "CryptoManager",
    # ==================== 异常处理体系 ====================
    "SimpleSQLError",
    "ConfigError",
    "CryptoError",
    "ValidationError",
    "DatabaseError",
    "ConnectionError",
    "TransientConnectionError",
    "RetriesExhaustedError",
    "FatalDriverError",
    "QueryError",
    "CursorClosedError",
]
