"""
配置管理模块

使用 TOML 文件保存命名的连接配置，每个字段都经过 CryptoManager 加密。
密钥信息保存在同目录下的 encryption.key 中。

配置文件结构::

    version = "1.0.0"
    app_name = "simplesql"

    [connections.production]
    host = "gAAAAAB..."
    password = "gAAAAAB..."

    [metadata]
    created = "2024-01-01T00:00:00+08:00"
    last_modified = "2024-01-01T00:00:00+08:00"
"""

import tomllib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import tomli_w

from ..utils.logging_utils import get_logger
from ..utils.path_utils import PathHelper
from .crypto import CryptoManager
from .exceptions import ConfigError, CryptoError, ValidationError
from .profile import ConnectionProfile

logger = get_logger(__name__)

SUPPORTED_VERSIONS = ["1.0.0"]
CONFIG_VERSION = "1.0.0"
KEY_FILE_NAME = "encryption.key"

ERROR_EMPTY_PROFILE_NAME = "连接名称不能为空且必须是字符串"


class ConfigManager:
    """
    配置管理器类

    Attributes:
        app_name (str): 应用名称，决定默认配置目录
        config_file (str): 配置文件名
        config_dir (Path): 配置目录
        config_path (Path): 配置文件完整路径

    Example:
        >>> config = ConfigManager("my_app")
        >>> config.add_profile("local", ConnectionProfile("localhost", "root", "pw", "test"))
        >>> profile = config.get_profile("local")
    """

    def __init__(
        self,
        app_name: str = "simplesql",
        config_file: str = "connections.toml",
        config_dir: Optional[Union[str, Path]] = None,
    ):
        """
        初始化配置管理器

        Args:
            app_name: 应用名称
            config_file: 配置文件名
            config_dir: 配置目录，为None时使用用户配置目录

        Raises:
            ConfigError: 当配置文件或密钥初始化失败时
        """
        self.app_name = app_name
        self.config_file = config_file
        if config_dir is None:
            self.config_dir = PathHelper.get_user_config_dir(app_name)
        else:
            self.config_dir = Path(config_dir)
            PathHelper.ensure_dir_exists(self.config_dir)
        self.config_path = self.config_dir / config_file
        self.crypto: Optional[CryptoManager] = None
        self._ensure_config_exists()

    def _ensure_config_exists(self) -> None:
        """确保配置文件和密钥存在"""
        if not self.config_path.exists():
            self._create_default_config()
        self._load_or_create_crypto_key()
        logger.debug(f"配置文件就绪: {self.config_path}")

    def _create_default_config(self) -> None:
        now = datetime.now().astimezone().isoformat()
        default_config = {
            "version": CONFIG_VERSION,
            "app_name": self.app_name,
            "connections": {},
            "metadata": {"created": now, "last_modified": now},
        }
        self._save_config(default_config)
        logger.info(f"创建默认配置文件: {self.config_path}")

    def _load_or_create_crypto_key(self) -> None:
        """加载密钥文件，不存在时生成新密钥并保存"""
        key_file = self.config_dir / KEY_FILE_NAME

        try:
            if key_file.exists():
                self.crypto = CryptoManager.load_key(key_file)
                logger.debug("加密密钥加载成功")
            else:
                self.crypto = CryptoManager()
                self.crypto.save_key(key_file)
                logger.info("新加密密钥创建成功")
        except CryptoError as e:
            raise ConfigError(
                f"加密密钥不可用: {e.message}", config_file=str(key_file)
            ) from e

    def _load_config(self) -> Dict[str, Any]:
        """
        加载并验证配置文件

        Raises:
            ConfigError: 当配置文件不可读、格式无效或版本不支持时
        """
        try:
            with open(self.config_path, "rb") as f:
                config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"配置文件TOML格式错误: {str(e)}")
            raise ConfigError(
                f"配置文件格式无效: {str(e)}", config_file=str(self.config_path)
            ) from e
        except OSError as e:
            logger.error(f"加载配置文件失败: {str(e)}")
            raise ConfigError(
                f"配置文件加载失败: {str(e)}", config_file=str(self.config_path)
            ) from e

        self._validate_config(config)
        return config

    def _validate_config(self, config: Dict[str, Any]) -> None:
        for field in ("version", "app_name", "connections", "metadata"):
            if field not in config:
                raise ConfigError(
                    f"配置文件缺少必需字段: {field}", config_file=str(self.config_path)
                )

        if config["version"] not in SUPPORTED_VERSIONS:
            raise ConfigError(
                f"不支持的配置版本: {config['version']}",
                config_file=str(self.config_path),
            )

    def _save_config(self, config: Dict[str, Any]) -> None:
        config["metadata"]["last_modified"] = datetime.now().astimezone().isoformat()
        self._validate_config(config)

        try:
            with open(self.config_path, "wb") as f:
                f.write(tomli_w.dumps(config).encode("utf-8"))
        except OSError as e:
            logger.error(f"保存配置文件失败: {str(e)}")
            raise ConfigError(
                f"配置文件保存失败: {str(e)}", config_file=str(self.config_path)
            ) from e

        logger.debug(f"配置文件已保存: {self.config_path}")

    def _encrypt_fields(self, data: Dict[str, Any]) -> Dict[str, str]:
        return {key: self.crypto.encrypt_value(value) for key, value in data.items()}

    def _decrypt_fields(self, data: Dict[str, str], name: str) -> Dict[str, Any]:
        decrypted = {}
        for key, token in data.items():
            try:
                decrypted[key] = self.crypto.decrypt_value(token)
            except (CryptoError, ValueError) as e:
                logger.error(f"解密连接配置失败 {name}.{key}: {str(e)}")
                raise ConfigError(
                    f"连接配置无法解密: {name}.{key}",
                    config_file=str(self.config_path),
                    profile_name=name,
                ) from e
        return decrypted

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or not isinstance(name, str):
            raise ValidationError(ERROR_EMPTY_PROFILE_NAME, field_name="name")

    def add_profile(
        self, name: str, profile: Union[ConnectionProfile, Dict[str, Any]]
    ) -> None:
        """
        添加命名连接配置

        Args:
            name: 连接名称（唯一）
            profile: ConnectionProfile 或可以转换为它的字典

        Raises:
            ValidationError: 名称为空或配置缺少必需字段时
            ConfigError: 连接已存在或保存失败时
        """
        self._check_name(name)
        if isinstance(profile, dict):
            profile = ConnectionProfile.from_dict(profile)

        config = self._load_config()
        if name in config["connections"]:
            raise ConfigError(f"连接配置已存在: {name}", profile_name=name)

        config["connections"][name] = self._encrypt_fields(profile.to_dict())
        self._save_config(config)
        logger.info(f"连接配置已添加: {name}")

    def get_profile(self, name: str) -> ConnectionProfile:
        """
        获取命名连接配置（自动解密）

        Raises:
            ConfigError: 连接不存在或无法解密时
        """
        self._check_name(name)
        config = self._load_config()

        if name not in config["connections"]:
            raise ConfigError(f"连接配置不存在: {name}", profile_name=name)

        data = self._decrypt_fields(config["connections"][name], name)
        logger.debug(f"连接配置已获取: {name}")
        return ConnectionProfile.from_dict(data)

    def list_profiles(self) -> List[str]:
        """列出所有连接名称"""
        return list(self._load_config()["connections"].keys())

    def profile_exists(self, name: str) -> bool:
        return name in self._load_config()["connections"]

    def remove_profile(self, name: str) -> None:
        """
        删除命名连接配置

        Raises:
            ConfigError: 连接不存在时
        """
        self._check_name(name)
        config = self._load_config()

        if name not in config["connections"]:
            raise ConfigError(f"连接配置不存在: {name}", profile_name=name)

        del config["connections"][name]
        self._save_config(config)
        logger.info(f"连接配置已删除: {name}")

    def update_profile(
        self, name: str, profile: Union[ConnectionProfile, Dict[str, Any]]
    ) -> None:
        """
        替换已存在的连接配置

        Raises:
            ConfigError: 连接不存在时
        """
        self._check_name(name)
        if isinstance(profile, dict):
            profile = ConnectionProfile.from_dict(profile)

        config = self._load_config()
        if name not in config["connections"]:
            raise ConfigError(f"连接配置不存在: {name}", profile_name=name)

        config["connections"][name] = self._encrypt_fields(profile.to_dict())
        self._save_config(config)
        logger.info(f"连接配置已更新: {name}")

    def get_config_info(self) -> Dict[str, Any]:
        """配置文件的基本信息"""
        config = self._load_config()
        return {
            "version": config["version"],
            "app_name": config["app_name"],
            "connection_count": len(config["connections"]),
            "created": config["metadata"]["created"],
            "last_modified": config["metadata"]["last_modified"],
            "config_file": str(self.config_path),
        }

    def __repr__(self) -> str:
        return f"ConfigManager(app_name='{self.app_name}', config_path='{self.config_path}')"
