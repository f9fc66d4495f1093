"""
数据库驱动模块包

SQLAlchemyDriver 把一条 SQLAlchemy 连接封装为执行器使用的驱动能力，
并负责把驱动错误区分为瞬时断线和致命错误。

支持的驱动标识：
- mysql / mariadb (PyMySQL)
- postgresql (psycopg)
- mssql (pymssql)
- sqlite (内置 sqlite3)
"""

from .sqlalchemy_driver import TRANSIENT_ERROR_CODES, SQLAlchemyDriver

__all__ = [
    "SQLAlchemyDriver",
    "TRANSIENT_ERROR_CODES",
]
