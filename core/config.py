import copy
import os
import re
from typing import Any, Dict

import yaml

VERSION = "1.0.0"
API_BASE = "/api/v1"

DEFAULT_CONFIG: Dict[str, Any] = {
    "app_name": "MoodMate",
    "db": "sqlite:///data/moodmate.db",
    "log": {
        "level": "INFO",
        "file": "",
    },
    "ai": {
        "provider": {
            "base_url": "",
            "model_name": "",
            "api_key": "",
            "temperature": 70,
            "timeout_seconds": 60,
        },
    },
    "feedback": {
        "daily_limit": 2,
        "history_preview_chars": 120,
        "period_analysis": {
            "parallel": True,
            "max_days": 366,
            "timeout_seconds": 180,
        },
    },
    "auth": {
        "secret_key": "moodmate-dev-secret",
        "token_expire_minutes": 60 * 24,
        "dev_token_enabled": False,
        "dev_login_id": "moodmate001",
    },
}

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def _deep_merge(base: dict, ext: dict) -> dict:
    result = copy.deepcopy(base)
    for k, v in (ext or {}).items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _replace_env_vars(value: Any) -> Any:
    """递归替换 ${VAR:-default} 形式的环境变量。"""
    if isinstance(value, dict):
        return {k: _replace_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_replace_env_vars(v) for v in value]
    if not isinstance(value, str):
        return value

    def _repl(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        return os.getenv(name, default if default is not None else "")

    replaced = _ENV_PATTERN.sub(_repl, value)
    if replaced != value and _ENV_PATTERN.fullmatch(value):
        # 整个值是一个变量引用时，尝试还原为 yaml 标量类型
        try:
            return yaml.safe_load(replaced) if replaced else replaced
        except yaml.YAMLError:
            return replaced
    return replaced


class Config:
    def __init__(self, config_path: str = None):
        self.config_path = config_path or os.getenv("CONFIG_FILE", "config.yaml")
        self.config: Dict[str, Any] = {}
        self.reload()

    def reload(self) -> Dict[str, Any]:
        data = {}
        if os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        self.config = _replace_env_vars(_deep_merge(DEFAULT_CONFIG, data))
        return self.config

    def get(self, key: str, default: Any = None) -> Any:
        cursor: Any = self.config
        for part in [x for x in str(key or "").split(".") if x]:
            if not isinstance(cursor, dict) or part not in cursor:
                return default
            cursor = cursor[part]
        if cursor is None or cursor == "":
            return default
        return cursor

    def set(self, key: str, value: Any) -> None:
        keys = [x for x in str(key or "").split(".") if x]
        if not keys:
            return
        cursor = self.config
        for part in keys[:-1]:
            if not isinstance(cursor.get(part), dict):
                cursor[part] = {}
            cursor = cursor[part]
        cursor[keys[-1]] = value


cfg = Config()


def set_config(key: str, value: Any) -> None:
    """运行时覆盖配置项（不落盘），测试中用于切换限额等参数。"""
    cfg.set(key, value)
