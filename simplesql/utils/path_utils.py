"""
SimpleSQL 路径处理工具模块

决定连接配置文件、加密密钥和日志文件的存放位置。

查找顺序：
1. 环境变量 SIMPLESQL_CONFIG_DIR（直接作为配置目录）
2. 平台标准配置目录下的 {app_name} 子目录
3. 当前工作目录下的 .{app_name} 隐藏目录（前两者不可写时）
"""

import os
import platform
from pathlib import Path

CONFIG_DIR_ENV = "SIMPLESQL_CONFIG_DIR"


class PathHelper:
    """
    路径辅助类

    Example:
        >>> PathHelper.get_user_config_dir("simplesql")
        PosixPath('/home/user/.config/simplesql')
        >>> PathHelper.get_log_dir("simplesql")
        PosixPath('/home/user/.config/simplesql/logs')
    """

    @staticmethod
    def _platform_config_base() -> Path:
        system = platform.system().lower()
        if system == "windows":
            return Path(os.environ.get("APPDATA") or Path.home())
        if system == "darwin":
            return Path.home() / "Library" / "Application Support"
        xdg_home = os.environ.get("XDG_CONFIG_HOME")
        return Path(xdg_home) if xdg_home else Path.home() / ".config"

    @staticmethod
    def get_user_config_dir(app_name: str = "simplesql") -> Path:
        """
        获取（必要时创建）用户配置目录

        Args:
            app_name (str): 应用名称，默认为"simplesql"

        Returns:
            Path: 已存在的配置目录

        Raises:
            ValueError: 当应用名称为空或不是字符串时
            OSError: 当所有候选目录都无法创建时
        """
        if not app_name or not isinstance(app_name, str):
            raise ValueError("应用名称不能为空且必须是字符串")

        override = os.environ.get(CONFIG_DIR_ENV)
        if override:
            config_dir = Path(override).expanduser()
            PathHelper.ensure_dir_exists(config_dir)
            return config_dir

        candidates = [
            PathHelper._platform_config_base() / app_name,
            Path.cwd() / f".{app_name}",
        ]
        last_error = None
        for candidate in candidates:
            try:
                candidate.mkdir(parents=True, exist_ok=True)
                return candidate
            except OSError as e:
                last_error = e
        raise OSError(f"无法创建配置目录: {last_error}")

    @staticmethod
    def get_log_dir(app_name: str = "simplesql") -> Path:
        """配置目录下的 logs 子目录"""
        log_dir = PathHelper.get_user_config_dir(app_name) / "logs"
        PathHelper.ensure_dir_exists(log_dir)
        return log_dir

    @staticmethod
    def ensure_dir_exists(dir_path: str | Path) -> bool:
        """
        确保目录存在，不存在时递归创建

        Returns:
            bool: 目录可用返回True；路径为空或已被文件占用返回False

        Raises:
            OSError: 当目录创建失败时
        """
        if not dir_path:
            return False

        path = Path(dir_path)
        if path.is_dir():
            return True
        if path.exists():
            return False

        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OSError(f"无法创建目录 '{dir_path}': {e}") from e
        return True
