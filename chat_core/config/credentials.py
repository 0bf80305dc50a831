"""本地凭证覆盖文件管理。

配置（环境变量 / .env / config.yaml）中没有提供 API 密钥时，
允许用户把密钥保存在本地文件里，作为覆盖值使用。
文件格式与 .env 相同，读写交给 python-dotenv。
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import dotenv_values, set_key, unset_key

from chat_core.config.settings import settings


API_KEY_NAME = "HYPERBOLIC_API_KEY"


def _override_path(cfg=settings) -> Path:
    return Path(getattr(cfg, "credential_file", None) or ".chat_core.env").expanduser()


def load_api_key_override(cfg=settings) -> Optional[str]:
    """读取本地保存的密钥，不存在或为空时返回 None。"""

    path = _override_path(cfg)
    if not path.exists():
        return None
    value = dotenv_values(path).get(API_KEY_NAME)
    if not value or not value.strip():
        return None
    return value.strip()


def save_api_key_override(api_key: str, cfg=settings) -> None:
    """把密钥写入本地覆盖文件（保留文件中的其他键）。"""

    path = _override_path(cfg)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    set_key(str(path), API_KEY_NAME, api_key.strip(), quote_mode="never")


def clear_api_key_override(cfg=settings) -> None:
    path = _override_path(cfg)
    if path.exists():
        unset_key(str(path), API_KEY_NAME)


def resolve_api_key(cfg=settings) -> Optional[str]:
    """按优先级解析密钥：配置值优先，其次是本地覆盖文件。"""

    configured = getattr(cfg, "hyperbolic_api_key", None)
    if configured and configured.strip():
        return configured.strip()
    return load_api_key_override(cfg)
