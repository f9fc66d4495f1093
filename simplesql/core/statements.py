"""
参数化语句构建模块

根据映射数据拼接 INSERT / UPDATE / DELETE 语句，并把调用方传入的参数
在边界处一次性归类为两种绑定方式之一：

- NamedParams：``:name`` 形式的命名参数（字典）
- PositionalParams：驱动原生占位符的位置参数（元组）

表名和列名不做任何转义，调用方需保证其来源可信。
"""

from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple, Union

from ..utils.logging_utils import get_logger
from .exceptions import ValidationError

logger = get_logger(__name__)

PARAM_MARKER = ":"

# 支持 INSERT ... SET 写法的方言
SET_INSERT_DIALECTS = {"mysql", "mariadb"}

NamedParams = Dict[str, Any]
PositionalParams = Tuple[Any, ...]
BoundParams = Union[NamedParams, PositionalParams, None]


def is_associative(data: Any) -> bool:
    """映射中至少有一个非整数键时视为关联数据"""
    if not isinstance(data, Mapping):
        return False
    return any(not isinstance(key, int) for key in data.keys())


def normalize_params(data: Any) -> BoundParams:
    """
    把调用方传入的参数归类为命名参数或位置参数

    Args:
        data: None、映射、列表/元组或单个标量

    Returns:
        BoundParams: None、NamedParams（键已去掉前导冒号）或 PositionalParams

    Example:
        >>> normalize_params({":id": 5})
        {'id': 5}
        >>> normalize_params([1, 2])
        (1, 2)
        >>> normalize_params("abc")
        ('abc',)
    """
    if data is None:
        return None

    if isinstance(data, Mapping):
        if is_associative(data):
            return {_bind_name(key): value for key, value in data.items()}
        return tuple(data.values())

    if isinstance(data, (list, tuple)):
        return tuple(data)

    return (data,)


def _bind_name(key: Any) -> str:
    """绑定参数名：去掉前导冒号"""
    key = str(key)
    return key[1:] if key.startswith(PARAM_MARKER) else key


def _column_and_marker(key: Any) -> Tuple[str, str]:
    """返回 (列名, SQL中的占位符)"""
    key = str(key)
    if key.startswith(PARAM_MARKER):
        return key[1:], key
    return key, PARAM_MARKER + key


def _assignments(data: Mapping, separator: str) -> str:
    parts = []
    for key in data:
        column, marker = _column_and_marker(key)
        parts.append(f"{column} = {marker}")
    return separator.join(parts)


def _require_mapping(data: Any, field_name: str, operation: str) -> None:
    if not is_associative(data):
        raise ValidationError(
            f"{operation} 要求 {field_name} 为关联映射（列名 -> 值）",
            field_name=field_name,
            expected_type="Mapping[str, Any]",
        )


def build_insert(
    table: str, data: Mapping, dialect: str = "mysql"
) -> Tuple[str, NamedParams]:
    """
    构建 INSERT 语句

    MySQL 使用 ``INSERT INTO t SET a = :a`` 形式；其它方言不支持 SET 写法，
    使用 ``INSERT INTO t (a) VALUES (:a)``。

    Args:
        table: 表名
        data: 非空的 列名 -> 值 映射，键可以带前导冒号
        dialect: 方言名称，默认 mysql

    Returns:
        Tuple[str, NamedParams]: SQL文本和绑定参数

    Raises:
        ValidationError: 当 data 不是非空关联映射时

    Example:
        >>> build_insert("user", {"firstname": "Jack", "lastname": "Daniels"})
        ('INSERT INTO user SET firstname = :firstname, lastname = :lastname', {'firstname': 'Jack', 'lastname': 'Daniels'})
    """
    _require_mapping(data, "data", "INSERT")

    if dialect in SET_INSERT_DIALECTS:
        sql = f"INSERT INTO {table} SET " + _assignments(data, ", ")
    else:
        pairs = [_column_and_marker(key) for key in data]
        columns = ", ".join(column for column, _ in pairs)
        markers = ", ".join(marker for _, marker in pairs)
        sql = f"INSERT INTO {table} ({columns}) VALUES ({markers})"
    return sql, normalize_params(data)


def build_update(
    table: str, data: Mapping, where: Optional[Mapping] = None
) -> Tuple[str, NamedParams]:
    """
    构建 UPDATE 语句

    where 非空时条件之间用 AND 连接，绑定参数为 data 与 where 的并集，
    键冲突时以 where 的值为准。

    Raises:
        ValidationError: 当 data 或（非空的）where 不是关联映射时
    """
    _require_mapping(data, "data", "UPDATE")

    sql = f"UPDATE {table} SET " + _assignments(data, ", ")
    params = normalize_params(data)

    if where:
        _require_mapping(where, "where", "UPDATE")
        where_params = normalize_params(where)

        overlap = set(params) & set(where_params)
        if overlap:
            logger.warning(
                f"UPDATE {table} 的 SET 与 WHERE 参数同名，将使用 WHERE 的值: "
                f"{sorted(overlap)}"
            )

        params.update(where_params)
        sql += " WHERE " + _assignments(where, " AND ")

    return sql, params


def build_delete(table: str, where: Optional[Mapping] = None) -> Tuple[str, NamedParams]:
    """
    构建 DELETE 语句

    where 为空时不生成 WHERE 子句，会删除整张表的数据。

    Raises:
        ValidationError: 当非空的 where 不是关联映射时
    """
    sql = f"DELETE FROM {table}"

    if not where:
        logger.warning(f"DELETE FROM {table} 没有 WHERE 条件，将影响整张表")
        return sql, {}

    _require_mapping(where, "where", "DELETE")
    sql += " WHERE " + _assignments(where, " AND ")
    return sql, normalize_params(where)
