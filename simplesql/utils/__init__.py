"""
SimpleSQL 工具模块

- 日志管理：setup_logging / get_logger / set_log_level
- 路径处理：PathHelper，跨平台的用户配置目录
"""

from .logging_utils import get_logger, set_log_level, setup_logging
from .path_utils import PathHelper

__all__ = [
    # ==================== 日志管理模块 ====================
    "setup_logging",
    "get_logger",
    "set_log_level",
    # ==================== 路径处理模块 ====================
    "PathHelper",
]
