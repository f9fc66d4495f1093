"""
SimpleSQL 日志配置模块

库内部各模块通过 get_logger(__name__) 获取 "simplesql.*" 下的 logger，
默认只挂一个 NullHandler，不产生任何输出；应用调用 setup_logging 决定
输出到控制台还是轮转文件。

echo_sql=True 时，SQLAlchemy 引擎日志（实际发送的语句和参数）
也会写入同样的输出位置。
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List

from .path_utils import PathHelper

DEFAULT_LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s "
    + "[%(filename)s:%(lineno)d]"
)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVEL_MAP = {name: getattr(logging, name) for name in VALID_LOG_LEVELS}

# SQLAlchemy 在 INFO 级别记录执行的SQL
SQLALCHEMY_ENGINE_LOGGER = "sqlalchemy.engine"


def _validate_log_level(level: str) -> int:
    """
    把日志级别名称转换为 logging 常量

    Raises:
        ValueError: 当日志级别无效时
    """
    level_upper = str(level).upper()
    if level_upper not in LOG_LEVEL_MAP:
        raise ValueError(f"无效的日志级别: '{level}'，有效值为: {VALID_LOG_LEVELS}")
    return LOG_LEVEL_MAP[level_upper]


def _file_handler(
    app_name: str, log_dir: str | None, max_file_size: int, backup_count: int
) -> logging.Handler:
    log_dir_path = PathHelper.get_log_dir(app_name) if log_dir is None else Path(log_dir)
    if not PathHelper.ensure_dir_exists(log_dir_path):
        raise OSError(f"日志目录不可用: {log_dir_path}")

    return logging.handlers.RotatingFileHandler(
        filename=str(log_dir_path / f"{app_name}.log"),
        maxBytes=max_file_size,
        backupCount=backup_count,
        encoding="utf-8",
    )


def _replace_handlers(
    logger: logging.Logger, handlers: List[logging.Handler], level: int
) -> None:
    """移除并关闭旧handler后挂上新handler，重复配置不会重复输出"""
    for old in logger.handlers[:]:
        logger.removeHandler(old)
        old.close()
    logger.setLevel(level)
    for handler in handlers:
        logger.addHandler(handler)


def setup_logging(
    app_name: str = "simplesql",
    level: str = "INFO",
    log_to_console: bool = False,
    log_to_file: bool = True,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    log_format: str | None = None,
    log_dir: str | None = None,
    echo_sql: bool = False,
) -> logging.Logger:
    """
    配置日志输出

    Args:
        app_name (str): logger名称，同时用作日志文件名，默认"simplesql"
        level (str): 日志级别，可选值：DEBUG, INFO, WARNING, ERROR, CRITICAL
        log_to_console (bool): 是否输出到控制台（stdout）
        log_to_file (bool): 是否输出到轮转日志文件
        max_file_size (int): 单个日志文件最大大小（字节）
        backup_count (int): 保留的备份日志文件数量
        log_format (str | None): 自定义日志格式字符串
        log_dir (str | None): 日志目录，为None时使用配置目录下的logs
        echo_sql (bool): 是否同时输出 SQLAlchemy 引擎日志

    Returns:
        logging.Logger: 配置好的logger

    Raises:
        ValueError: 当日志级别无效或未启用任何输出方式时
        OSError: 当日志目录不可用时

    Example:
        >>> logger = setup_logging("simplesql", "DEBUG", log_to_console=True)
        >>> logger.info("应用程序启动成功")
    """
    log_level = _validate_log_level(level)
    if not log_to_file and not log_to_console:
        raise ValueError("至少需要启用一种日志输出方式（控制台或文件）")

    handlers: List[logging.Handler] = []
    if log_to_file:
        handlers.append(_file_handler(app_name, log_dir, max_file_size, backup_count))
    if log_to_console:
        handlers.append(logging.StreamHandler(sys.stdout))

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)

    logger = logging.getLogger(app_name)
    _replace_handlers(logger, handlers, log_level)

    engine_logger = logging.getLogger(SQLALCHEMY_ENGINE_LOGGER)
    if echo_sql:
        # 共享handler，由 app logger 负责关闭
        engine_logger.handlers[:] = handlers
        engine_logger.setLevel(logging.INFO)
        engine_logger.propagate = False

    logger.debug(f"日志系统初始化完成 - 应用: {app_name}, 级别: {level.upper()}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    获取指定名称的logger实例

    建议在模块级别使用：``logger = get_logger(__name__)``
    """
    return logging.getLogger(name)


def set_log_level(logger_name: str, level: str) -> None:
    """
    动态设置logger及其所有handler的日志级别

    Example:
        >>> set_log_level("simplesql", "DEBUG")
    """
    log_level = _validate_log_level(level)
    logger = get_logger(logger_name)
    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.setLevel(log_level)
