"""
测试公共夹具
"""

import pytest

from simplesql import SimpleSQL

USER_TABLE_DDL = (
    "CREATE TABLE user ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "firstname TEXT NOT NULL, "
    "lastname TEXT)"
)


@pytest.fixture
def user_table_ddl():
    """user 表的建表语句"""
    return USER_TABLE_DDL


@pytest.fixture
def sqlite_db(tmp_path):
    """基于临时文件的 SQLite 执行器，已建好 user 表"""
    db = SimpleSQL("", "", "", str(tmp_path / "test.db"), "sqlite")
    db.exec(USER_TABLE_DDL)
    yield db
    db.close()
