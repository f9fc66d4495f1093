"""
结果游标模块

对 SQLAlchemy 的 CursorResult 做一层薄封装：按取数模式转换行数据，
在执行时记录受影响的行数，并保证关闭操作幂等。
"""

from enum import Enum
from typing import Any, Iterator, List, Optional

from sqlalchemy.engine import CursorResult, Row

from ..utils.logging_utils import get_logger
from .exceptions import CursorClosedError

logger = get_logger(__name__)


class FetchMode(str, Enum):
    """
    行数据的返回形式

    - ASSOC: 列名 -> 值 的字典
    - BOTH: 同时以列名和列序号为键的字典
    - NUM: 按列顺序的元组
    - OBJ: SQLAlchemy Row 对象，支持属性访问
    """

    ASSOC = "assoc"
    BOTH = "both"
    NUM = "num"
    OBJ = "obj"


def valid_fetch_mode(fetch_mode: Any) -> FetchMode:
    """
    校验取数模式，无效时回退到 ASSOC

    Args:
        fetch_mode: FetchMode 成员或其字符串值（不区分大小写）
    """
    if isinstance(fetch_mode, FetchMode):
        return fetch_mode
    try:
        return FetchMode(str(fetch_mode).lower())
    except ValueError:
        logger.warning(f"无效的取数模式: {fetch_mode!r}，使用默认模式 assoc")
        return FetchMode.ASSOC


class Cursor:
    """
    结果游标

    Attributes:
        fetch_mode (FetchMode): 行数据返回形式
        row_count (int): 驱动报告的受影响行数（执行时记录）
        returns_rows (bool): 语句是否返回结果集
        closed (bool): 游标是否已关闭

    Example:
        >>> cursor = db.fetch_many("SELECT id, name FROM user")
        >>> for row in cursor:
        ...     print(row["name"])
    """

    def __init__(self, result: CursorResult, fetch_mode: Any = FetchMode.ASSOC) -> None:
        self._result = result
        self.fetch_mode = valid_fetch_mode(fetch_mode)
        self.row_count: int = result.rowcount
        self.returns_rows: bool = result.returns_rows
        self.closed = False

    def _convert(self, row: Row) -> Any:
        if self.fetch_mode is FetchMode.NUM:
            return tuple(row)
        if self.fetch_mode is FetchMode.OBJ:
            return row
        if self.fetch_mode is FetchMode.BOTH:
            both = {}
            for index, (key, value) in enumerate(row._mapping.items()):
                both[key] = value
                both[index] = value
            return both
        return dict(row._mapping)

    def _ensure_open(self) -> None:
        if self.closed:
            raise CursorClosedError("游标已关闭，不能继续读取数据", operation="fetch")

    def fetch(self) -> Optional[Any]:
        """
        读取下一行

        Returns:
            下一行数据；没有更多数据或语句不返回结果集时返回None

        Raises:
            CursorClosedError: 游标已关闭（包括因重连而失效）时
        """
        self._ensure_open()
        if not self.returns_rows:
            return None

        row = self._result.fetchone()
        return None if row is None else self._convert(row)

    def fetchall(self) -> List[Any]:
        """读取剩余的全部行"""
        self._ensure_open()
        if not self.returns_rows:
            return []
        return [self._convert(row) for row in self._result.fetchall()]

    def __iter__(self) -> Iterator[Any]:
        while True:
            row = self.fetch()
            if row is None:
                return
            yield row

    def close_cursor(self) -> None:
        """关闭游标，重复调用不做任何事"""
        if self.closed:
            return
        self._result.close()
        self.closed = True

    def __repr__(self) -> str:
        return (
            f"Cursor(fetch_mode={self.fetch_mode.value!r}, "
            f"row_count={self.row_count!r}, closed={self.closed!r})"
        )
