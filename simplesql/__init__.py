"""
SimpleSQL - 断线自动重连的轻量SQL封装
======================================

在 SQLAlchemy 连接之上提供连接管理、空闲断线自动重连，以及根据映射数据
构建参数化 INSERT / UPDATE / DELETE 语句的便捷方法。

使用示例:
    >>> from simplesql import SimpleSQL
    >>> db = SimpleSQL("localhost", "user", "pass", "test_db")
    >>> db.insert("user", {"firstname": "Jack", "lastname": "Daniels"})
    1
    >>> db.delete("user", {"id": 1})
    1
"""

import logging

__version__ = "0.1.0"
__license__ = "MIT"

from .core.config import ConfigManager
from .core.cursor import Cursor, FetchMode
from .core.exceptions import (
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
from .core.executor import MAX_RETRIES, SimpleSQL
from .core.profile import ConnectionProfile
from .utils.logging_utils import get_logger, set_log_level, setup_logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # 执行器
    "SimpleSQL",
    "MAX_RETRIES",
    "ConnectionProfile",
    "Cursor",
    "FetchMode",
    "ConfigManager",
    # 异常类
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
    # 日志
    "setup_logging",
    "get_logger",
    "set_log_level",
]


def get_version() -> str:
    """获取当前模块版本号"""
    return __version__
