"""
日志工具测试
"""

import logging

import pytest

from simplesql.utils.logging_utils import (
    SQLALCHEMY_ENGINE_LOGGER,
    get_logger,
    set_log_level,
    setup_logging,
)


class TestLoggingUtils:
    """日志配置测试类"""

    def teardown_method(self):
        """测试方法 teardown"""
        for name in ("test_simplesql_log", "test_simplesql_console"):
            logger = logging.getLogger(name)
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
                handler.close()
        engine_logger = logging.getLogger(SQLALCHEMY_ENGINE_LOGGER)
        engine_logger.handlers.clear()
        engine_logger.setLevel(logging.NOTSET)
        engine_logger.propagate = True

    def test_log_to_file(self, tmp_path):
        """测试写入日志文件"""
        logger = setup_logging("test_simplesql_log", "DEBUG", log_dir=str(tmp_path))
        logger.info("数据库连接成功")
        for handler in logger.handlers:
            handler.flush()

        log_file = tmp_path / "test_simplesql_log.log"
        assert log_file.exists()
        assert "数据库连接成功" in log_file.read_text(encoding="utf-8")

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path):
        """测试重复配置不会重复添加handler"""
        setup_logging("test_simplesql_log", log_dir=str(tmp_path))
        logger = setup_logging("test_simplesql_log", log_dir=str(tmp_path))

        assert len(logger.handlers) == 1

    def test_console_only(self):
        """测试只输出到控制台"""
        logger = setup_logging(
            "test_simplesql_console", "WARNING", log_to_console=True, log_to_file=False
        )

        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0], logging.StreamHandler)

    def test_no_output(self):
        """测试未启用任何输出方式"""
        with pytest.raises(ValueError):
            setup_logging("test_simplesql_log", log_to_console=False, log_to_file=False)

    def test_invalid_level(self):
        """测试无效的日志级别"""
        with pytest.raises(ValueError):
            setup_logging("test_simplesql_log", "VERBOSE", log_to_console=True)

    def test_set_log_level(self):
        """测试动态调整日志级别"""
        logger = setup_logging(
            "test_simplesql_console", "INFO", log_to_console=True, log_to_file=False
        )

        set_log_level("test_simplesql_console", "error")

        assert logger.level == logging.ERROR
        assert all(handler.level == logging.ERROR for handler in logger.handlers)

    def test_get_logger(self):
        """测试获取模块logger"""
        assert get_logger("simplesql.core.executor").name == "simplesql.core.executor"

    def test_echo_sql(self):
        """测试 SQLAlchemy 引擎日志共享同样的输出"""
        logger = setup_logging(
            "test_simplesql_console", "INFO", log_to_console=True, log_to_file=False,
            echo_sql=True,
        )

        engine_logger = logging.getLogger(SQLALCHEMY_ENGINE_LOGGER)
        assert engine_logger.level == logging.INFO
        assert engine_logger.handlers == logger.handlers
        assert not engine_logger.propagate

    def test_package_logger_is_silent_by_default(self):
        """测试库默认只挂 NullHandler"""
        import simplesql  # noqa: F401

        handlers = logging.getLogger("simplesql").handlers
        assert any(isinstance(h, logging.NullHandler) for h in handlers)
