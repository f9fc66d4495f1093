"""
加密保存的连接配置示例
"""

import os
import sys
import tempfile

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from simplesql import ConfigManager, ConnectionProfile, SimpleSQL


def saved_connections_example():
    """保存连接配置，再按名称打开连接并切换数据库"""

    work_dir = tempfile.mkdtemp()
    config = ConfigManager("simplesql_example", config_dir=work_dir)

    databases = {
        "company_mysql": ConnectionProfile(
            "mysql.company.com", "app_user", "mysql_pass123", "company_data"
        ),
        "analytics_postgres": ConnectionProfile(
            "pgsql.analytics.com", "analytics_user", "pg_pass456", "analytics_db",
            "postgresql",
        ),
        "local_sqlite": ConnectionProfile(
            "", "", "", os.path.join(work_dir, "cache.db"), "sqlite"
        ),
    }

    for name, profile in databases.items():
        if not config.profile_exists(name):
            config.add_profile(name, profile)
            print(f"✅ 连接配置已保存: {name}")

    print(f"\n🔗 所有连接: {config.list_profiles()}")
    print(f"📄 配置文件: {config.get_config_info()['config_file']}")

    db = SimpleSQL.from_profile(config.get_profile("local_sqlite"), max_retries=5)
    try:
        db.exec("CREATE TABLE IF NOT EXISTS cache (k TEXT PRIMARY KEY, v TEXT)")
        db.insert("cache", {"k": "greeting", "v": "hello"})
        print(f"\n📋 {db.fetch_one('SELECT * FROM cache')}")

        db.set_database(os.path.join(work_dir, "archive.db"))
        print(f"🔄 已切换到: {db.get_connection_info()['database']}")
    finally:
        db.close()


if __name__ == "__main__":
    saved_connections_example()
