"""
执行器测试（使用模拟驱动）
"""

from unittest.mock import MagicMock, patch

import pytest

from simplesql import SimpleSQL
from simplesql.core.cursor import FetchMode
from simplesql.core.exceptions import (
    ConnectionError,
    CursorClosedError,
    FatalDriverError,
    RetriesExhaustedError,
    TransientConnectionError,
    ValidationError,
)
from simplesql.core.executor import MAX_RETRIES


def make_result(rowcount=1, returns_rows=False, rows=None):
    """构造模拟的 CursorResult"""
    result = MagicMock()
    result.rowcount = rowcount
    result.returns_rows = returns_rows
    result.fetchone.side_effect = list(rows or []) + [None]
    return result


def gone_away():
    return TransientConnectionError("数据库连接已断开: (2006, 'MySQL server has gone away')")


class TestSimpleSQLExecutor:
    """SimpleSQL 执行协议测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.driver = MagicMock()
        self.driver.last_insert_id = None
        self.driver.in_transaction.return_value = False
        self.patcher = patch.object(
            SimpleSQL, "_create_driver", return_value=self.driver
        )
        self.create_driver = self.patcher.start()
        self.db = SimpleSQL("localhost", "test_user", "test_password", "test_db")

    def teardown_method(self):
        """测试方法 teardown"""
        self.db.close()
        self.patcher.stop()

    @property
    def reconnects(self):
        # 首次连接不算重连
        return self.create_driver.call_count - 1

    def test_connect_on_construction(self):
        """测试创建时立即连接"""
        assert self.create_driver.call_count == 1
        self.driver.connect.assert_called_once()
        assert self.db.profile.database == "test_db"
        assert self.db.profile.driver == "mysql"

    def test_invalid_max_retries(self):
        """测试重试次数不能为负数"""
        with pytest.raises(ValueError):
            SimpleSQL("localhost", "user", "pass", "db", max_retries=-1)

    def test_zero_retries_single_attempt(self):
        """测试 max_retries=0 时只尝试一次"""
        db = SimpleSQL("localhost", "user", "pass", "db", max_retries=0)
        self.create_driver.reset_mock()
        self.driver.execute.side_effect = gone_away()

        with pytest.raises(RetriesExhaustedError) as exc_info:
            db.fetch_one("SELECT 1")

        assert self.driver.execute.call_count == 1
        assert self.create_driver.call_count == 1
        assert exc_info.value.attempts == 1
        db.close()

    def test_insert_example(self):
        """测试插入语句与返回的自增ID"""
        self.driver.execute.return_value = make_result()
        self.driver.last_insert_id = 42

        inserted = self.db.insert("user", {"firstname": "Jack", "lastname": "Daniels"})

        assert inserted == 42
        assert self.db.last_insert_id == 42
        self.driver.execute.assert_called_once_with(
            "INSERT INTO user SET firstname = :firstname, lastname = :lastname",
            {"firstname": "Jack", "lastname": "Daniels"},
        )
        assert self.db.sql == (
            "INSERT INTO user SET firstname = :firstname, lastname = :lastname"
        )

    def test_insert_rejects_non_mapping_before_driver_call(self):
        """测试非关联数据在访问数据库之前就被拒绝"""
        with pytest.raises(ValidationError):
            self.db.insert("user", ["Jack", "Daniels"])

        self.driver.execute.assert_not_called()
        assert self.reconnects == 0

    def test_delete_example(self):
        """测试删除语句返回受影响行数"""
        self.driver.execute.return_value = make_result(rowcount=3)

        deleted = self.db.delete("user", {"id": 5})

        assert deleted == 3
        assert self.db.count() == 3
        self.driver.execute.assert_called_once_with(
            "DELETE FROM user WHERE id = :id", {"id": 5}
        )

    def test_update_binds_union_of_data_and_where(self):
        """测试更新语句的绑定参数是数据和条件的并集"""
        self.driver.execute.return_value = make_result(rowcount=2)

        updated = self.db.update("user", {"firstname": "Jack"}, {"lastname": "Daniels"})

        assert updated == 2
        self.driver.execute.assert_called_once_with(
            "UPDATE user SET firstname = :firstname WHERE lastname = :lastname",
            {"firstname": "Jack", "lastname": "Daniels"},
        )

    def test_retries_exhausted(self):
        """测试连续瞬时断线：max_retries + 1 次尝试全部失败后抛出异常"""
        self.driver.execute.side_effect = gone_away()

        with pytest.raises(RetriesExhaustedError) as exc_info:
            self.db.update("user", {"firstname": "Jack"}, {"id": 5})

        assert self.driver.execute.call_count == MAX_RETRIES + 1
        assert self.reconnects == MAX_RETRIES + 1
        assert exc_info.value.attempts == MAX_RETRIES + 1
        assert "3" in exc_info.value.message

    def test_recover_after_transient_failures(self):
        """测试连续断线 max_retries 次后最后一次尝试成功"""
        self.driver.execute.side_effect = [gone_away() for _ in range(MAX_RETRIES)] + [
            make_result(rowcount=1)
        ]

        updated = self.db.update("user", {"firstname": "Jack"}, {"id": 5})

        assert updated == 1
        assert self.reconnects == MAX_RETRIES
        assert self.driver.execute.call_count == MAX_RETRIES + 1

    def test_retry_runs_same_statement(self):
        """测试重试时执行的是同一条语句和参数"""
        self.driver.execute.side_effect = [gone_away(), make_result()]

        self.db.delete("user", {"id": 7})

        first, second = self.driver.execute.call_args_list
        assert first == second

    def test_custom_max_retries(self):
        """测试自定义重试次数"""
        db = SimpleSQL("localhost", "user", "pass", "db", max_retries=5)
        self.create_driver.reset_mock()
        self.driver.execute.side_effect = gone_away()

        with pytest.raises(RetriesExhaustedError):
            db.fetch_one("SELECT 1")

        assert self.driver.execute.call_count == 6
        assert self.create_driver.call_count == 6
        db.close()

    def test_fatal_error_is_not_retried(self):
        """测试致命错误立即抛出，不重连"""
        self.driver.execute.side_effect = FatalDriverError("SQL执行失败: syntax error")

        with pytest.raises(FatalDriverError):
            self.db.fetch_one("SELEC * FROM user")

        self.driver.execute.assert_called_once()
        assert self.reconnects == 0

    def test_reconnect_failure_propagates(self):
        """测试重连失败时直接抛出连接异常"""
        self.driver.execute.side_effect = gone_away()
        self.driver.connect.side_effect = ConnectionError("数据库连接建立失败")

        with pytest.raises(ConnectionError) as exc_info:
            self.db.exec("DELETE FROM user")

        assert not isinstance(exc_info.value, TransientConnectionError)
        self.driver.execute.assert_called_once()

    def test_reconnect_ignores_close_failure(self):
        """测试旧连接关闭失败时仍然建立新连接"""
        self.driver.disconnect.side_effect = ConnectionError("关闭数据库连接失败")
        self.driver.execute.side_effect = [gone_away(), make_result(rowcount=1)]

        assert self.db.delete("user", {"id": 3}) == 1
        assert self.reconnects == 1
        self.driver.disconnect.side_effect = None

    def test_query_and_exec_use_raw_execution(self):
        """测试 query / exec 不绑定参数"""
        self.driver.execute_raw.return_value = make_result(rowcount=4)

        assert self.db.exec("UPDATE user SET active = 1") == 4
        self.db.query("SELECT * FROM user")

        assert self.driver.execute_raw.call_count == 2
        self.driver.execute.assert_not_called()

    def test_fetch_one_positional_params(self):
        """测试序列参数按位置绑定"""
        row = MagicMock()
        row._mapping = {"id": 1, "firstname": "Jack"}
        self.driver.execute.return_value = make_result(returns_rows=True, rows=[row])

        result = self.db.fetch_one("SELECT * FROM user WHERE id = %s", [1])

        assert result == {"id": 1, "firstname": "Jack"}
        self.driver.execute.assert_called_once_with(
            "SELECT * FROM user WHERE id = %s", (1,)
        )

    def test_fetch_one_scalar_param(self):
        """测试单个标量参数被当作一个位置参数"""
        self.driver.execute.return_value = make_result(returns_rows=True)

        assert self.db.fetch_one("SELECT * FROM user WHERE id = %s", 5) is None
        self.driver.execute.assert_called_once_with(
            "SELECT * FROM user WHERE id = %s", (5,)
        )

    def test_fetch_aliases(self):
        """测试 fetch_row / fetch_rows 别名"""
        assert SimpleSQL.fetch_row is SimpleSQL.fetch_one
        assert SimpleSQL.fetch_rows is SimpleSQL.fetch_many

    def test_fetch_many_returns_cursor(self):
        """测试 fetch_many 返回游标并记录为当前游标"""
        self.driver.execute.return_value = make_result(returns_rows=True)

        cursor = self.db.fetch_many("SELECT * FROM user", fetch_mode=FetchMode.NUM)

        assert cursor is self.db.cursor
        assert cursor.fetch_mode is FetchMode.NUM

    def test_next_operation_closes_previous_cursor(self):
        """测试下一次操作关闭上一个游标"""
        first_result = make_result(returns_rows=True)
        self.driver.execute.return_value = first_result
        cursor = self.db.fetch_many("SELECT * FROM user")

        self.driver.execute.return_value = make_result()
        self.db.delete("user", {"id": 1})

        assert cursor.closed
        first_result.close.assert_called_once()

    def test_reconnect_invalidates_cursor(self):
        """测试重连后旧游标失效"""
        self.driver.execute.return_value = make_result(returns_rows=True)
        cursor = self.db.fetch_many("SELECT * FROM user")

        self.db.reconnect()

        with pytest.raises(CursorClosedError):
            cursor.fetch()

    def test_close_cursor_twice(self):
        """测试重复关闭游标不做任何事"""
        result = make_result(returns_rows=True)
        self.driver.execute.return_value = result
        self.db.fetch_many("SELECT * FROM user")

        self.db.close_cursor()
        self.db.close_cursor()

        result.close.assert_called_once()

    def test_close_cursor_without_cursor(self):
        """测试没有游标时关闭游标不做任何事"""
        self.db.close_cursor()
        assert self.db.count() == 0

    def test_reset(self):
        """测试重置最近执行状态"""
        self.driver.execute.return_value = make_result(rowcount=1)
        self.driver.last_insert_id = 3
        self.db.insert("user", {"firstname": "Jack"})

        self.db.reset()

        assert self.db.sql is None
        assert self.db.cursor is None
        assert self.db.last_insert_id is None
        assert self.db.count() == 0

    def test_set_database(self):
        """测试切换数据库"""
        self.db.set_database("other_db")

        assert self.db.profile.database == "other_db"
        assert self.db.profile.host == "localhost"
        new_profile = self.create_driver.call_args[0][0]
        assert new_profile.database == "other_db"

    def test_connect_replaces_profile(self):
        """测试 connect 保存新的连接参数并重新连接"""
        self.db.connect("db.example.com", "admin", "secret", "prod", "postgresql")

        assert self.db.profile.host == "db.example.com"
        assert self.db.profile.driver == "postgresql"
        assert self.reconnects == 1

    def test_close_is_idempotent(self):
        """测试重复关闭连接"""
        self.db.close()
        self.db.close()

        self.driver.disconnect.assert_called_once()
        with pytest.raises(ConnectionError):
            self.db.fetch_one("SELECT 1")

    def test_context_manager(self):
        """测试上下文管理器退出时关闭连接"""
        with SimpleSQL("localhost", "user", "pass", "db") as db:
            assert db.driver is self.driver
        assert db.driver is None

    def test_begin_transaction(self):
        """测试开启事务"""
        self.db.begin_transaction()
        self.driver.begin.assert_called_once()

    def test_begin_transaction_when_already_in_transaction(self):
        """测试已在事务中时开启事务不做任何事"""
        self.driver.in_transaction.return_value = True

        self.db.start_transaction()

        self.driver.begin.assert_not_called()

    def test_commit_and_rollback_outside_transaction(self):
        """测试不在事务中时提交/回滚不做任何事"""
        self.db.commit()
        self.db.rollback()
        self.db.end_transaction()

        self.driver.commit.assert_not_called()
        self.driver.rollback.assert_not_called()

    def test_commit_and_rollback_in_transaction(self):
        """测试事务中的提交与回滚"""
        self.driver.in_transaction.return_value = True

        self.db.end_transaction()
        self.db.rollback()

        self.driver.commit.assert_called_once()
        self.driver.rollback.assert_called_once()

    def test_quote_delegates_to_driver(self):
        """测试字面量转义由驱动完成"""
        self.driver.quote.return_value = "'O''Reilly'"

        assert self.db.quote("O'Reilly") == "'O''Reilly'"
        self.driver.quote.assert_called_once_with("O'Reilly", None)

    def test_connection_info_after_close(self):
        """测试关闭后的连接信息不包含密码"""
        self.db.close()

        info = self.db.get_connection_info()

        assert info["is_connected"] is False
        assert "password" not in info
        assert info["database"] == "test_db"
