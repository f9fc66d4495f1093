"""
SimpleSQL 自定义异常模块

异常层次::

    SimpleSQLError
    ├── ConfigError              连接配置文件读写
    ├── CryptoError              配置字段加解密
    ├── ValidationError          调用参数格式错误（不访问数据库）
    └── DatabaseError
        ├── ConnectionError      连接建立失败 / 已关闭
        │   └── TransientConnectionError  连接被服务器断开，可重连重试
        ├── RetriesExhaustedError         重试次数耗尽
        ├── FatalDriverError (QueryError) 其它驱动错误，不重试
        └── CursorClosedError             使用已关闭的游标
"""

from typing import Any, Dict, Optional


class SimpleSQLError(Exception):
    """
    SimpleSQL 基础异常类

    Attributes:
        message (str): 异常描述信息
        error_code (Optional[str]): 错误代码（驱动错误码等）
        details (Dict[str, Any]): 结构化的上下文信息，只包含非空项
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = dict(details or {})

    def _record(self, **context: Any) -> None:
        """把上下文同时保存为属性和 details 条目（空值不进入 details）"""
        for key, value in context.items():
            setattr(self, key, value)
            if value:
                self.details[key] = value

    def __str__(self) -> str:
        if self.error_code:
            return f"{self.__class__.__name__}: {self.message} (错误代码: {self.error_code})"
        return f"{self.__class__.__name__}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """转换为可序列化的字典"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigError(SimpleSQLError):
    """连接配置文件读取、解析、保存或查找失败"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        config_file: Optional[str] = None,
        profile_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details)
        self._record(config_file=config_file, profile_name=profile_name)


class CryptoError(SimpleSQLError):
    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details)
        self._record(operation=operation)


class ValidationError(SimpleSQLError):
    """
    调用参数验证异常

    例如需要列名映射却传入了序列。在任何驱动调用之前抛出，不会触发重连。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        field_name: Optional[str] = None,
        expected_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details)
        self._record(field_name=field_name, expected_type=expected_type)


class DatabaseError(SimpleSQLError):
    """数据库操作异常的基类"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        database_type: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details)
        self._record(database_type=database_type, operation=operation)


class ConnectionError(DatabaseError):
    """连接建立失败，或在连接关闭后继续使用执行器"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        host: Optional[str] = None,
        database: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details=details)
        self._record(host=host, database=database)


class TransientConnectionError(ConnectionError):
    """
    瞬时连接异常

    连接被服务器断开（例如空闲超时导致的 "server has gone away"）。
    执行器捕获它并重连重试，调用方只会在直接使用驱动时看到它。
    """


class RetriesExhaustedError(DatabaseError):
    """连续的瞬时断线用完了全部尝试次数"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        attempts: Optional[int] = None,
        query: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details=details)
        self._record(attempts=attempts, query=query)
        if query:
            self.details["query"] = _query_preview(query)


class FatalDriverError(DatabaseError):
    """
    致命驱动异常

    语法错误、约束冲突等驱动报告的其它错误，立即传播，不重连也不重试。
    details 中只保留参数名，不保留参数值。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        query: Optional[str] = None,
        parameters: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details=details)
        self.parameters = parameters
        self._record(query=query)
        if query:
            self.details["query"] = _query_preview(query)
        if isinstance(parameters, dict) and parameters:
            self.details["parameter_keys"] = list(parameters)


QueryError = FatalDriverError


class CursorClosedError(DatabaseError):
    """读取已关闭（或因重连失效）的游标"""


def _query_preview(query: str, max_length: int = 100) -> str:
    if len(query) <= max_length:
        return query
    return query[:max_length] + "..."
