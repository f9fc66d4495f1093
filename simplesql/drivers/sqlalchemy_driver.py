"""
SQLAlchemy 数据库驱动模块

把一条 SQLAlchemy Connection 封装成执行器需要的驱动能力：
建立/断开连接、预编译执行、原样执行、字面量转义、最后插入ID以及事务控制。

与连接池不同，每个驱动实例只持有一条连接（NullPool），
断线重连由上层执行器通过整体替换驱动实例完成。

驱动错误在这里统一翻译成项目异常：
- 连接被断开（SQLAlchemy 标记 connection_invalidated，或错误码属于
  TRANSIENT_ERROR_CODES）-> TransientConnectionError
- 其它驱动错误 -> FatalDriverError
"""

from typing import Any, Dict, FrozenSet, Iterable, Optional

from sqlalchemy import String, create_engine, text
from sqlalchemy.engine import URL, Connection, CursorResult, Engine, RootTransaction
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlalchemy.types import TypeEngine

from ..core.exceptions import (
    ConnectionError,
    FatalDriverError,
    TransientConnectionError,
    ValidationError,
)
from ..core.profile import ConnectionProfile
from ..core.statements import BoundParams
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

# MySQL 客户端错误 2006: "MySQL server has gone away"（空闲超时断开等）
CR_SERVER_GONE_ERROR = 2006
TRANSIENT_ERROR_CODES: FrozenSet[int] = frozenset({CR_SERVER_GONE_ERROR})


def extract_error_code(error: DBAPIError) -> Optional[int]:
    """
    从 DBAPI 异常中提取数值错误码

    PyMySQL / mysqlclient / pymssql 等驱动把错误码放在 args[0]。

    Returns:
        Optional[int]: 错误码，驱动未提供时返回None
    """
    args = getattr(error.orig, "args", None) or ()
    if args and isinstance(args[0], int):
        return args[0]
    return None


class SQLAlchemyDriver:
    """
    SQLAlchemy 数据库驱动类

    Attributes:
        DRIVER_MAP (Dict[str, str]): 驱动标识到 SQLAlchemy "dialect+driver" 的映射
        DEFAULT_PORTS (Dict[str, int]): 各数据库的默认端口
        INIT_OPTIONS (Dict[str, Dict[str, Any]]): 各数据库的连接初始化参数
        profile (ConnectionProfile): 连接配置
        engine (Optional[Engine]): SQLAlchemy 引擎
        connection (Optional[Connection]): 当前持有的唯一连接
        last_insert_id (Optional[Any]): 最近一次执行后驱动报告的自增ID

    Example:
        >>> profile = ConnectionProfile("localhost", "user", "pass", "test_db")
        >>> driver = SQLAlchemyDriver(profile)
        >>> driver.connect()
        >>> result = driver.execute("SELECT * FROM user WHERE id = :id", {"id": 1})
        >>> driver.disconnect()
    """

    DRIVER_MAP: Dict[str, str] = {
        "mysql": "mysql+pymysql",
        "mariadb": "mysql+pymysql",
        "postgresql": "postgresql+psycopg",
        "mssql": "mssql+pymssql",
        "sqlite": "sqlite+pysqlite",
    }

    DEFAULT_PORTS: Dict[str, int] = {
        "mysql": 3306,
        "mariadb": 3306,
        "postgresql": 5432,
        "mssql": 1433,
    }

    # 强制使用 UTF-8 字符集
    INIT_OPTIONS: Dict[str, Dict[str, Any]] = {
        "mysql": {"charset": "utf8mb4", "init_command": "SET NAMES utf8mb4"},
        "mariadb": {"charset": "utf8mb4", "init_command": "SET NAMES utf8mb4"},
        "postgresql": {"client_encoding": "utf8"},
    }

    def __init__(
        self,
        profile: ConnectionProfile,
        transient_error_codes: Optional[Iterable[int]] = None,
    ) -> None:
        """
        初始化驱动实例（不会立即连接）

        Args:
            profile: 连接配置
            transient_error_codes: 视为瞬时断线的错误码集合，默认 TRANSIENT_ERROR_CODES

        Raises:
            ValidationError: 当驱动标识不受支持时
        """
        if "+" not in profile.driver and profile.dialect not in self.DRIVER_MAP:
            supported = ", ".join(self.DRIVER_MAP)
            raise ValidationError(
                f"不支持的驱动: {profile.driver}，支持的驱动: {supported}",
                field_name="driver",
            )

        self.profile = profile
        self.transient_error_codes = frozenset(
            TRANSIENT_ERROR_CODES
            if transient_error_codes is None
            else transient_error_codes
        )
        self.engine: Optional[Engine] = None
        self.connection: Optional[Connection] = None
        self.last_insert_id: Optional[Any] = None
        self._transaction: Optional[RootTransaction] = None

    def _build_connection_url(self) -> URL:
        """
        构建数据库连接URL

        用户名和密码中的特殊字符由 URL.create 负责转义。
        SQLite 的 database 为数据库文件路径，为空时使用内存数据库。
        """
        profile = self.profile
        dialect = profile.dialect
        drivername = profile.driver if "+" in profile.driver else self.DRIVER_MAP[dialect]

        if dialect == "sqlite":
            return URL.create(drivername, database=profile.database or ":memory:")

        return URL.create(
            drivername,
            username=profile.username or None,
            password=profile.password or None,
            host=profile.host or None,
            port=profile.port or self.DEFAULT_PORTS.get(dialect),
            database=profile.database or None,
        )

    def _get_connect_args(self) -> Dict[str, Any]:
        """驱动初始化参数：方言默认值，再合并配置中的 options"""
        connect_args = dict(self.INIT_OPTIONS.get(self.profile.dialect, {}))
        connect_args.update(self.profile.options)
        return connect_args

    def connect(self) -> None:
        """
        建立数据库连接

        Raises:
            ConnectionError: 当连接建立失败或缺少对应的 DBAPI 模块时
        """
        if self.connection is not None:
            logger.warning("数据库连接已存在，无需重复连接")
            return

        url = self._build_connection_url()
        logger.debug(f"构建的连接URL: {url.render_as_string(hide_password=True)}")

        try:
            self.engine = create_engine(
                url, poolclass=NullPool, connect_args=self._get_connect_args()
            )
            self.connection = self.engine.connect()
        except (SQLAlchemyError, ImportError) as e:
            self._cleanup_resources()
            error_msg = f"数据库连接建立失败: {e.__class__.__name__}: {str(e)}"
            logger.error(error_msg)
            raise ConnectionError(
                error_msg,
                host=self.profile.host,
                database=self.profile.database,
            ) from e

        logger.info(
            f"数据库连接成功: {self.profile.driver} "
            f"({self.profile.host or self.profile.database})"
        )

    def _cleanup_resources(self) -> None:
        """
        关闭连接并释放引擎资源

        关闭失败时引擎仍会释放，连接和引擎句柄总会清空。

        Raises:
            ConnectionError: 关闭连接失败时
        """
        connection, self.connection = self.connection, None
        engine, self.engine = self.engine, None
        self._transaction = None

        try:
            if connection is not None:
                connection.close()
        except SQLAlchemyError as e:
            logger.error(f"关闭数据库连接失败: {e}")
            raise ConnectionError(
                f"关闭数据库连接失败: {e}",
                host=self.profile.host,
                database=self.profile.database,
            ) from e
        finally:
            if engine is not None:
                engine.dispose()

    def disconnect(self) -> None:
        """
        断开数据库连接

        未提交的事务会被回滚。连接不存在时不做任何事。

        Raises:
            ConnectionError: 关闭连接失败时（资源仍会释放）
        """
        if self.connection is None and self.engine is None:
            logger.debug("数据库连接已断开，无需重复操作")
            return

        self._cleanup_resources()
        logger.info("数据库连接已断开")

    @property
    def is_connected(self) -> bool:
        """是否持有一条未关闭且未失效的连接（不访问数据库）"""
        return (
            self.connection is not None
            and not self.connection.closed
            and not self.connection.invalidated
        )

    def _require_connection(self) -> Connection:
        if self.connection is None:
            raise ConnectionError(
                "数据库未连接，请先调用connect()方法",
                host=self.profile.host,
                database=self.profile.database,
            )
        return self.connection

    def is_transient_error(self, error: DBAPIError) -> bool:
        """判断驱动错误是否为可通过重连恢复的瞬时断线"""
        if error.connection_invalidated:
            return True
        return extract_error_code(error) in self.transient_error_codes

    def _translate_error(
        self, error: SQLAlchemyError, sql: str, params: BoundParams
    ) -> Exception:
        """把 SQLAlchemy 异常翻译为项目异常"""
        if isinstance(error, DBAPIError):
            code = extract_error_code(error)
            if self.is_transient_error(error):
                logger.warning(f"检测到数据库连接断开 (错误代码: {code}): {error.orig}")
                return TransientConnectionError(
                    f"数据库连接已断开: {error.orig}",
                    error_code=str(code) if code is not None else None,
                    host=self.profile.host,
                    database=self.profile.database,
                )
            message = f"SQL执行失败: {error.orig.__class__.__name__}: {error.orig}"
        else:
            code = None
            message = f"SQL执行失败: {error.__class__.__name__}: {str(error)}"

        logger.error(message)
        return FatalDriverError(
            message,
            error_code=str(code) if code is not None else None,
            query=sql,
            parameters=params if isinstance(params, dict) else None,
        )

    def _rollback_implicit(self, connection: Connection) -> None:
        """显式事务之外出错时，回滚自动开启的事务，使连接保持可用"""
        if self._transaction is None and connection.in_transaction():
            try:
                connection.rollback()
            except SQLAlchemyError as e:
                logger.warning(f"回滚失败: {e.__class__.__name__}: {str(e)}")

    def _finish(self, connection: Connection, result: CursorResult) -> CursorResult:
        self.last_insert_id = result.lastrowid
        # 显式事务之外，每条语句立即提交
        if self._transaction is None:
            connection.commit()
        return result

    def execute(self, sql: str, params: BoundParams = None) -> CursorResult:
        """
        预编译并执行一条语句

        Args:
            sql: SQL语句；命名参数使用 ``:name``，位置参数使用驱动原生占位符
            params: None、NamedParams（字典）或 PositionalParams（元组）

        Returns:
            CursorResult: 执行结果

        Raises:
            ConnectionError: 未连接时
            TransientConnectionError: 连接已被服务器断开时
            FatalDriverError: 其它驱动错误
        """
        connection = self._require_connection()
        logger.debug(f"执行SQL: {sql}")

        try:
            if isinstance(params, tuple):
                result = connection.exec_driver_sql(sql, params)
            else:
                result = connection.execute(text(sql), params or {})
            return self._finish(connection, result)
        except SQLAlchemyError as e:
            translated = self._translate_error(e, sql, params)
            if not isinstance(translated, TransientConnectionError):
                self._rollback_implicit(connection)
            raise translated from e

    def execute_raw(self, sql: str) -> CursorResult:
        """
        不做参数绑定，原样执行SQL

        语句直接交给 DBAPI，调用方负责转义（可配合 quote() 使用）。
        """
        connection = self._require_connection()
        logger.debug(f"执行原始SQL: {sql}")

        try:
            result = connection.exec_driver_sql(sql)
            return self._finish(connection, result)
        except SQLAlchemyError as e:
            translated = self._translate_error(e, sql, None)
            if not isinstance(translated, TransientConnectionError):
                self._rollback_implicit(connection)
            raise translated from e

    def quote(self, value: Any, type_: Optional[TypeEngine] = None) -> str:
        """
        使用当前方言把值转义为SQL字面量

        Args:
            value: 要转义的值
            type_: SQLAlchemy 类型（类或实例），默认 String

        Raises:
            ConnectionError: 未连接时
            FatalDriverError: 当该类型不支持字面量渲染时
        """
        if self.engine is None:
            raise ConnectionError("数据库未连接，无法转义字面量")

        if type_ is None:
            type_ = String()
        elif isinstance(type_, type):
            type_ = type_()

        processor = type_.literal_processor(self.engine.dialect)
        if processor is None:
            raise FatalDriverError(f"类型 {type_!r} 不支持字面量转义")
        return processor(value)

    def in_transaction(self) -> bool:
        """是否处于显式开启的事务中"""
        return self._transaction is not None and self._transaction.is_active

    def begin(self) -> None:
        """开启显式事务"""
        connection = self._require_connection()
        # 结束自动开启的隐式事务，才能显式 begin
        if connection.in_transaction():
            connection.commit()
        self._transaction = connection.begin()
        logger.debug("事务已开启")

    def commit(self) -> None:
        """提交显式事务"""
        if self._transaction is None:
            return
        try:
            self._transaction.commit()
        except DBAPIError as e:
            raise self._translate_error(e, "COMMIT", None) from e
        finally:
            self._transaction = None
        logger.debug("事务已提交")

    def rollback(self) -> None:
        """回滚显式事务"""
        if self._transaction is None:
            return
        try:
            self._transaction.rollback()
        except DBAPIError as e:
            raise self._translate_error(e, "ROLLBACK", None) from e
        finally:
            self._transaction = None
        logger.debug("事务已回滚")

    def get_connection_info(self) -> Dict[str, Any]:
        """
        获取数据库连接信息（不包含密码）

        Returns:
            Dict[str, Any]: driver / host / port / database / username / is_connected
        """
        profile = self.profile
        return {
            "driver": profile.driver,
            "host": profile.host,
            "port": profile.port or self.DEFAULT_PORTS.get(profile.dialect),
            "database": profile.database,
            "username": profile.username,
            "is_connected": self.is_connected,
        }

    def __repr__(self) -> str:
        profile = self.profile
        return (
            f"SQLAlchemyDriver(driver={profile.driver!r}, host={profile.host!r}, "
            f"database={profile.database!r}, connected={self.is_connected!r})"
        )
