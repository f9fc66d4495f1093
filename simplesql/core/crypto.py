"""
连接配置字段加密

Fernet 对称加密，密钥由 PBKDF2-HMAC-SHA256 从随机口令和盐值派生。
口令、盐值和迭代次数保存在 TOML 格式的密钥文件中，重新加载即得到同一密钥。

字段值先序列化为 JSON 再加密，解密后保留原始类型
（端口仍是整数，options 仍是字典）。
"""

import base64
import json
import secrets
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Union

import tomli_w
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..utils.logging_utils import get_logger
from .exceptions import CryptoError

logger = get_logger(__name__)

SALT_BYTES = 16
PASSPHRASE_BYTES = 32
PBKDF2_ITERATIONS = 480000


class CryptoManager:
    """
    配置字段加密器

    Attributes:
        password (str): 派生密钥用的口令
        salt (bytes): 盐值
        iterations (int): PBKDF2 迭代次数

    Example:
        >>> crypto = CryptoManager()
        >>> token = crypto.encrypt_value(3306)
        >>> crypto.decrypt_value(token)
        3306
    """

    def __init__(
        self,
        password: Optional[str] = None,
        salt: Optional[bytes] = None,
        iterations: int = PBKDF2_ITERATIONS,
    ):
        """
        Args:
            password: 口令，为None时随机生成
            salt: 盐值，为None时随机生成
            iterations: PBKDF2 迭代次数

        Raises:
            CryptoError: 密钥派生失败时
        """
        self.password = password or base64.urlsafe_b64encode(
            secrets.token_bytes(PASSPHRASE_BYTES)
        ).decode("ascii")
        self.salt = salt or secrets.token_bytes(SALT_BYTES)
        self.iterations = iterations
        self.fernet = Fernet(self._derive_key())

    def _derive_key(self) -> bytes:
        try:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=self.salt,
                iterations=self.iterations,
            )
            return base64.urlsafe_b64encode(kdf.derive(self.password.encode("utf-8")))
        except (TypeError, ValueError) as e:
            logger.error(f"加密密钥派生失败: {e}")
            raise CryptoError(f"加密密钥派生失败: {e}", operation="derive_key") from e

    def encrypt(self, data: str) -> str:
        """
        加密字符串（允许空字符串）

        Raises:
            ValueError: 输入不是字符串时
        """
        if not isinstance(data, str):
            raise ValueError("加密数据必须是字符串")
        return self.fernet.encrypt(data.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """
        解密 Fernet 令牌

        Raises:
            ValueError: 令牌为空或不是字符串时
            CryptoError: 令牌被篡改、格式错误或密钥不匹配时
        """
        if not token or not isinstance(token, str):
            raise ValueError("加密数据不能为空且必须是字符串")

        try:
            return self.fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeEncodeError) as e:
            logger.error("解密令牌无效")
            raise CryptoError(
                "解密失败: 加密数据可能被篡改或密钥不匹配", operation="decrypt"
            ) from e

    def encrypt_value(self, value: Any) -> str:
        """序列化为JSON后加密，值必须可以JSON序列化"""
        return self.encrypt(json.dumps(value, ensure_ascii=False))

    def decrypt_value(self, token: str) -> Any:
        """
        解密并还原 encrypt_value 保存的值

        Raises:
            CryptoError: 解密失败或内容不是JSON时
        """
        plain = self.decrypt(token)
        try:
            return json.loads(plain)
        except ValueError as e:
            raise CryptoError("解密后的内容不是有效的JSON", operation="decode") from e

    def get_key_info(self) -> Dict[str, Any]:
        """
        可持久化的密钥信息

        Warning:
            拿到它就能解密配置文件，只能写入受保护的位置
        """
        return {
            "password": self.password,
            "salt": base64.urlsafe_b64encode(self.salt).decode("ascii"),
            "iterations": self.iterations,
        }

    @classmethod
    def from_saved_key(
        cls, password: str, salt: str, iterations: int = PBKDF2_ITERATIONS
    ) -> "CryptoManager":
        """
        由 get_key_info() 的结果恢复加密器

        Raises:
            ValueError: 口令或盐值为空时
            CryptoError: 盐值无法解码时
        """
        if not password or not salt:
            raise ValueError("密码和盐值不能为空")

        try:
            salt_bytes = base64.urlsafe_b64decode(salt.encode("ascii"))
        except (ValueError, TypeError) as e:
            raise CryptoError(f"盐值无法解码: {e}", operation="load_key") from e
        return cls(password, salt_bytes, iterations)

    def save_key(self, key_file: Union[str, Path]) -> None:
        """
        把密钥信息写入 TOML 文件

        Raises:
            CryptoError: 写入失败时
        """
        try:
            with open(key_file, "wb") as f:
                tomli_w.dump(self.get_key_info(), f)
        except OSError as e:
            logger.error(f"保存加密密钥失败: {e}")
            raise CryptoError(f"加密密钥保存失败: {e}", operation="save_key") from e

    @classmethod
    def load_key(cls, key_file: Union[str, Path]) -> "CryptoManager":
        """
        从 save_key() 写入的文件恢复加密器

        Raises:
            CryptoError: 文件不可读、格式无效或缺少字段时
        """
        try:
            with open(key_file, "rb") as f:
                key_data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"加载加密密钥失败: {e}")
            raise CryptoError(f"加密密钥加载失败: {e}", operation="load_key") from e

        if "password" not in key_data or "salt" not in key_data:
            raise CryptoError("密钥文件格式无效", operation="load_key")

        try:
            return cls.from_saved_key(
                key_data["password"],
                key_data["salt"],
                key_data.get("iterations", PBKDF2_ITERATIONS),
            )
        except ValueError as e:
            raise CryptoError(f"密钥文件格式无效: {e}", operation="load_key") from e

    def __repr__(self) -> str:
        return f"CryptoManager(password='***', iterations={self.iterations})"
