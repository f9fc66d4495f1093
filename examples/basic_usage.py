"""
基础使用示例
"""

import os
import sys
import tempfile

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from simplesql import FetchMode, SimpleSQL, SimpleSQLError, setup_logging


def basic_usage_example():
    """基础使用示例（SQLite 临时文件，无需数据库服务器）"""

    setup_logging("simplesql", "INFO", log_to_console=True, log_to_file=False)

    db_file = os.path.join(tempfile.mkdtemp(), "example.db")

    # MySQL 的写法：SimpleSQL("localhost", "your_username", "your_password", "your_database")
    with SimpleSQL("", "", "", db_file, "sqlite") as db:
        db.exec(
            "CREATE TABLE user ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, firstname TEXT, lastname TEXT)"
        )
        print("✅ user 表已创建")

        user_id = db.insert("user", {"firstname": "Jack", "lastname": "Daniels"})
        db.insert("user", {"firstname": "Jim", "lastname": "Beam"})
        print(f"✅ 插入成功，自增ID: {user_id}")

        updated = db.update("user", {"lastname": "Walker"}, {"id": user_id})
        print(f"✅ 更新了 {updated} 行")

        row = db.fetch_one("SELECT * FROM user WHERE id = :id", {"id": user_id})
        print(f"\n📋 第一行: {row}")

        print("📋 全部数据:")
        for values in db.fetch_many("SELECT id, firstname FROM user", fetch_mode=FetchMode.NUM):
            print(f"   {values}")

        # 原样执行时自行转义
        name = db.quote("O'Reilly")
        db.exec(f"INSERT INTO user (firstname, lastname) VALUES ('Tim', {name})")

        # 事务
        db.begin_transaction()
        db.delete("user", {"firstname": "Jim"})
        db.rollback()
        print(f"\n↩️ 回滚后行数: {db.fetch_one('SELECT COUNT(*) AS n FROM user')['n']}")

        try:
            db.exec("SELEC * FROM user")
        except SimpleSQLError as e:
            print(f"❌ 预期中的错误: {e}")


if __name__ == "__main__":
    basic_usage_example()
