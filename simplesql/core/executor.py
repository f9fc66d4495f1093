"""
断线重连语句执行器

SimpleSQL 持有连接配置和唯一的一条连接，所有数据操作都走同一套执行协议：

1. 关闭上一个未关闭的游标（任意时刻最多一个打开的游标）
2. 记录即将执行的SQL
3. 在有限次数的循环中尝试执行：
   - 成功：保存游标/行数/自增ID并立即返回
   - TransientConnectionError：重连后重试同一语句
   - 其它错误：立即向上抛出，不重连
4. 循环耗尽仍未成功时抛出 RetriesExhaustedError

首次尝试之外最多重试 max_retries 次，共 N = max_retries + 1 次尝试。
N 次连续的瞬时失败会触发恰好 N 次重连，随后抛出 RetriesExhaustedError。

Example:
    >>> db = SimpleSQL("localhost", "user", "pass", "test_db")
    >>> user_id = db.insert("user", {"firstname": "Jack", "lastname": "Daniels"})
    >>> db.update("user", {"lastname": "Beam"}, {"id": user_id})
    1
    >>> db.fetch_one("SELECT * FROM user WHERE id = :id", {"id": user_id})
    {'id': 1, 'firstname': 'Jack', 'lastname': 'Beam'}
    >>> db.close()
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

from sqlalchemy.types import TypeEngine

from ..drivers.sqlalchemy_driver import SQLAlchemyDriver
from ..utils.logging_utils import get_logger
from .config import ConfigManager
from .cursor import Cursor, FetchMode, valid_fetch_mode
from .exceptions import (
    ConnectionError,
    RetriesExhaustedError,
    TransientConnectionError,
)
from .profile import DEFAULT_DRIVER, ConnectionProfile
from .statements import build_delete, build_insert, build_update, normalize_params

logger = get_logger(__name__)

# 首次尝试之外的最大重试次数
MAX_RETRIES = 3

T = TypeVar("T")


class SimpleSQL:
    """
    断线自动重连的SQL执行器

    Attributes:
        profile (ConnectionProfile): 当前连接配置
        driver (Optional[SQLAlchemyDriver]): 当前连接，关闭后为None
        max_retries (int): 首次尝试之外的最大重试次数
        sql (Optional[str]): 最近一次执行的SQL
        cursor (Optional[Cursor]): 最近一次执行得到的游标
        last_insert_id (Optional[Any]): 最近一次 insert 得到的自增ID

    Note:
        实例不是线程安全的，多线程场景请每个线程使用独立实例。
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        database: str,
        driver: str = DEFAULT_DRIVER,
        *,
        port: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None,
        max_retries: int = MAX_RETRIES,
        transient_error_codes: Optional[Iterable[int]] = None,
    ) -> None:
        """
        创建执行器并立即连接

        Args:
            host: 主机地址
            username: 用户名
            password: 密码
            database: 数据库名（SQLite 为文件路径）
            driver: 驱动标识，默认 mysql
            port: 端口号，默认使用驱动的默认端口
            options: 额外的驱动连接参数
            max_retries: 首次尝试之外的最大重试次数，0 表示不重试
            transient_error_codes: 视为瞬时断线的驱动错误码

        Raises:
            ValueError: max_retries 为负数时
            ConnectionError: 连接失败时
        """
        if max_retries < 0:
            raise ValueError("max_retries 不能为负数")

        self.max_retries = max_retries
        self.transient_error_codes = transient_error_codes
        self.profile: Optional[ConnectionProfile] = None
        self.driver: Optional[SQLAlchemyDriver] = None
        self.sql: Optional[str] = None
        self.cursor: Optional[Cursor] = None
        self.last_insert_id: Optional[Any] = None

        self._connect_profile(
            ConnectionProfile(
                host=host,
                username=username,
                password=password,
                database=database,
                driver=driver,
                port=port,
                options=dict(options or {}),
            )
        )

    @classmethod
    def from_profile(cls, profile: ConnectionProfile, **kwargs: Any) -> "SimpleSQL":
        """从 ConnectionProfile 创建执行器"""
        return cls(
            profile.host,
            profile.username,
            profile.password,
            profile.database,
            profile.driver,
            port=profile.port,
            options=profile.options,
            **kwargs,
        )

    @classmethod
    def from_config(
        cls, name: str, app_name: str = "simplesql", **kwargs: Any
    ) -> "SimpleSQL":
        """
        从加密配置文件中读取命名连接并创建执行器

        Raises:
            ConfigError: 配置不存在或读取失败时
        """
        profile = ConfigManager(app_name).get_profile(name)
        return cls.from_profile(profile, **kwargs)

    # ==================== 连接生命周期 ====================

    def connect(
        self,
        host: str,
        username: str,
        password: str,
        database: str,
        driver: str = DEFAULT_DRIVER,
    ) -> None:
        """保存新的连接参数并重新连接"""
        self._connect_profile(
            ConnectionProfile(host, username, password, database, driver)
        )

    def _connect_profile(self, profile: ConnectionProfile) -> None:
        self.profile = profile
        self.reconnect()

    def _create_driver(self, profile: ConnectionProfile) -> SQLAlchemyDriver:
        return SQLAlchemyDriver(profile, self.transient_error_codes)

    def reconnect(self) -> None:
        """
        关闭游标、丢弃当前连接并按当前配置建立新连接

        旧连接上得到的游标全部失效。连接失败的异常直接向上抛出。

        Raises:
            ConnectionError: 连接失败时
        """
        self.close_cursor()
        try:
            self.close()
        except ConnectionError as e:
            # 旧连接已被丢弃，关闭失败不影响重连
            logger.warning(f"关闭旧连接失败，继续重连: {e.message}")

        driver = self._create_driver(self.profile)
        driver.connect()
        self.driver = driver
        logger.info(f"已连接数据库: {self.profile.database}")

    def set_database(self, database: str) -> None:
        """重置最近执行状态，并以相同账号连接到另一个数据库"""
        self.reset()
        self._connect_profile(self.profile.with_database(database))

    def close(self) -> None:
        """断开连接，重复调用不做任何事"""
        if self.driver is None:
            return
        driver, self.driver = self.driver, None
        driver.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.driver is not None and self.driver.is_connected

    def get_connection_info(self) -> Dict[str, Any]:
        """当前连接信息（不包含密码）"""
        if self.driver is None:
            info = self.profile.to_dict()
            info.pop("password", None)
            info.pop("options", None)
            info["is_connected"] = False
            return info
        return self.driver.get_connection_info()

    def _require_driver(self) -> SQLAlchemyDriver:
        if self.driver is None:
            raise ConnectionError("数据库连接已关闭，请先调用reconnect()")
        return self.driver

    # ==================== 执行协议 ====================

    def _run(self, sql: str, attempt: Callable[[SQLAlchemyDriver], T]) -> T:
        """
        执行协议：关闭旧游标、记录SQL，在有限次数内尝试执行

        Args:
            sql: 即将执行的SQL（仅用于记录）
            attempt: 接收当前驱动并完成一次执行的函数

        Raises:
            RetriesExhaustedError: 所有尝试都因瞬时断线失败时
        """
        self.close_cursor()
        self.sql = sql

        attempts = self.max_retries + 1
        for attempt_no in range(attempts):
            try:
                return attempt(self._require_driver())
            except TransientConnectionError as e:
                logger.warning(
                    f"数据库连接已断开，重连后重试 ({attempt_no + 1}/{attempts}): {e.message}"
                )
                self.reconnect()

        logger.error(f"尝试 {attempts} 次后数据库连接仍不可用")
        raise RetriesExhaustedError(
            f"数据库连接断开，已重试 {self.max_retries} 次仍未成功",
            attempts=attempts,
            query=sql,
        )

    def _open_cursor(self, result: Any, fetch_mode: Any = FetchMode.ASSOC) -> Cursor:
        self.cursor = Cursor(result, fetch_mode)
        return self.cursor

    def query(self, sql: str, fetch_mode: Any = FetchMode.ASSOC) -> Cursor:
        """
        不绑定参数直接执行查询，调用方负责转义

        Returns:
            Cursor: 结果游标
        """
        mode = valid_fetch_mode(fetch_mode)
        return self._run(
            sql, lambda driver: self._open_cursor(driver.execute_raw(sql), mode)
        )

    def exec(self, sql: str) -> int:
        """
        不绑定参数直接执行语句，调用方负责转义

        Returns:
            int: 受影响的行数
        """

        def attempt(driver: SQLAlchemyDriver) -> int:
            cursor = self._open_cursor(driver.execute_raw(sql))
            return cursor.row_count

        return self._run(sql, attempt)

    def fetch_one(
        self, sql: str, params: Any = None, fetch_mode: Any = FetchMode.ASSOC
    ) -> Optional[Any]:
        """
        执行参数化查询并返回第一行

        Args:
            sql: SQL语句，命名参数用 ``:name``，位置参数用驱动原生占位符
            params: 映射、序列或单个标量
            fetch_mode: 行数据返回形式

        Returns:
            第一行数据，没有结果时返回None
        """
        bound = normalize_params(params)
        mode = valid_fetch_mode(fetch_mode)

        def attempt(driver: SQLAlchemyDriver) -> Optional[Any]:
            cursor = self._open_cursor(driver.execute(sql, bound), mode)
            return cursor.fetch()

        return self._run(sql, attempt)

    def fetch_many(
        self, sql: str, params: Any = None, fetch_mode: Any = FetchMode.ASSOC
    ) -> Cursor:
        """
        执行参数化查询并返回游标

        Note:
            下一次操作（或重连）会关闭该游标。
        """
        bound = normalize_params(params)
        mode = valid_fetch_mode(fetch_mode)
        return self._run(
            sql, lambda driver: self._open_cursor(driver.execute(sql, bound), mode)
        )

    fetch_row = fetch_one
    fetch_rows = fetch_many

    def insert(self, table: str, data: Mapping) -> Optional[Any]:
        """
        插入一行数据

        Args:
            table: 表名
            data: 非空的 列名 -> 值 映射

        Returns:
            驱动报告的自增ID，驱动不提供时为None

        Raises:
            ValidationError: data 不是非空关联映射时（不会访问数据库）
        """
        sql, params = build_insert(table, data, self.profile.dialect)

        def attempt(driver: SQLAlchemyDriver) -> Optional[Any]:
            self._open_cursor(driver.execute(sql, params))
            self.last_insert_id = driver.last_insert_id
            return self.last_insert_id

        return self._run(sql, attempt)

    def update(self, table: str, data: Mapping, where: Optional[Mapping] = None) -> int:
        """
        更新数据

        Returns:
            int: 受影响的行数

        Raises:
            ValidationError: data 或非空的 where 不是关联映射时
        """
        sql, params = build_update(table, data, where)

        def attempt(driver: SQLAlchemyDriver) -> int:
            self._open_cursor(driver.execute(sql, params))
            return self.count()

        return self._run(sql, attempt)

    def delete(self, table: str, where: Optional[Mapping] = None) -> int:
        """
        删除数据，where 为空时删除整张表

        Returns:
            int: 受影响的行数

        Raises:
            ValidationError: 非空的 where 不是关联映射时
        """
        sql, params = build_delete(table, where)

        def attempt(driver: SQLAlchemyDriver) -> int:
            self._open_cursor(driver.execute(sql, params))
            return self.count()

        return self._run(sql, attempt)

    def count(self) -> int:
        """最近一次执行影响的行数，没有游标时返回0"""
        if self.cursor is not None:
            return self.cursor.row_count
        return 0

    def quote(self, value: Any, type_: Optional[TypeEngine] = None) -> str:
        """
        把值转义为当前方言的SQL字面量

        只应与 query() / exec() 配合使用，参数化方法请直接传参数。
        """
        return self._require_driver().quote(value, type_)

    # ==================== 事务控制 ====================

    def in_transaction(self) -> bool:
        return self.driver is not None and self.driver.in_transaction()

    def begin_transaction(self) -> None:
        """开启事务，已在事务中时不做任何事"""
        if not self.in_transaction():
            self._require_driver().begin()

    def commit(self) -> None:
        """提交事务，不在事务中时不做任何事"""
        if self.in_transaction():
            self.driver.commit()

    def rollback(self) -> None:
        """回滚事务，不在事务中时不做任何事"""
        if self.in_transaction():
            self.driver.rollback()

    def start_transaction(self) -> None:
        self.begin_transaction()

    def end_transaction(self) -> None:
        self.commit()

    # ==================== 状态管理 ====================

    def close_cursor(self) -> None:
        """关闭最近的游标，重复调用不做任何事"""
        if self.cursor is not None:
            self.cursor.close_cursor()

    def reset(self) -> None:
        """清空最近执行的SQL、游标和自增ID"""
        self.close_cursor()
        self.sql = None
        self.cursor = None
        self.last_insert_id = None

    def __enter__(self) -> "SimpleSQL":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self) -> None:
        # 构造失败时属性可能不存在
        if getattr(self, "driver", None) is not None:
            self.close()

    def __repr__(self) -> str:
        return f"SimpleSQL(profile={self.profile!r}, connected={self.is_connected!r})"
