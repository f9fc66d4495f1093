"""
连接配置（Connection Profile）

保存一次连接所需的全部参数。实例不可变，切换数据库时通过
with_database() 生成新的配置对象。
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Optional

from .exceptions import ValidationError

DEFAULT_DRIVER = "mysql"


@dataclass(frozen=True)
class ConnectionProfile:
    """
    数据库连接配置

    Attributes:
        host (str): 主机地址（SQLite 忽略）
        username (str): 用户名
        password (str): 密码
        database (str): 数据库名，SQLite 下为数据库文件路径
        driver (str): 驱动标识，如 mysql / postgresql / mssql / sqlite，
            也可以直接写 SQLAlchemy 的 "dialect+driver" 形式
        port (Optional[int]): 端口号，为None时使用驱动默认端口
        options (Dict[str, Any]): 额外的驱动连接参数，会合并到 connect_args
    """

    host: str
    username: str
    password: str
    database: str
    driver: str = DEFAULT_DRIVER
    port: Optional[int] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.driver or not isinstance(self.driver, str):
            raise ValidationError(
                "驱动标识不能为空且必须是字符串",
                field_name="driver",
                expected_type="str",
            )

    @property
    def dialect(self) -> str:
        """驱动标识中的方言部分，例如 "mysql+pymysql" -> "mysql" """
        return self.driver.split("+", 1)[0].lower()

    def with_database(self, database: str) -> "ConnectionProfile":
        """返回只替换了数据库名的新配置"""
        return replace(self, database=database)

    def to_dict(self) -> Dict[str, Any]:
        """转换为可持久化的普通字典（port/options 为空时省略）"""
        data = asdict(self)
        if data["port"] is None:
            del data["port"]
        if not data["options"]:
            del data["options"]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionProfile":
        """
        从字典创建连接配置

        Raises:
            ValidationError: 当缺少必需字段时
        """
        missing = [key for key in ("database",) if key not in data]
        if missing:
            raise ValidationError(
                f"缺少必需的连接参数: {', '.join(missing)}", field_name=missing[0]
            )

        port = data.get("port")
        return cls(
            host=data.get("host", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            database=data["database"],
            driver=data.get("driver", DEFAULT_DRIVER),
            port=int(port) if port not in (None, "") else None,
            options=dict(data.get("options") or {}),
        )

    def __repr__(self) -> str:
        return (
            f"ConnectionProfile(driver={self.driver!r}, host={self.host!r}, "
            f"port={self.port!r}, database={self.database!r}, "
            f"username={self.username!r}, password='***')"
        )
