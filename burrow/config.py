"""
Configuration persistence for burrow.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

CONFIG_DIR = Path.home() / ".burrow"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_CANCEL_GRACE = 5.0
DEFAULT_CODE_LENGTH = 2
MIN_CODE_LENGTH = 1
MAX_CODE_LENGTH = 8


@dataclass
class AppConfig:
    language: Optional[str] = None
    qr_enabled: bool = False
    clipboard_enabled: bool = False
    auto_accept: bool = False
    download_dir: Optional[str] = None
    cancel_grace_period: float = DEFAULT_CANCEL_GRACE
    code_length: int = DEFAULT_CODE_LENGTH
    transit_port: Optional[int] = None


def _coerce_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return default


def _coerce_directory(value: object) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        expanded = Path(value).expanduser()
    except Exception:  # noqa: BLE001
        return None
    if not expanded.is_absolute():
        expanded = Path.home() / expanded
    return str(expanded)


def load_config() -> AppConfig:
    if not CONFIG_FILE.exists():
        return AppConfig()
    try:
        with CONFIG_FILE.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (ValueError, OSError):
        return AppConfig()
    if not isinstance(data, dict):
        return AppConfig()

    language = data.get("language")
    if not isinstance(language, str) or not language.strip():
        language = None

    grace_raw = data.get("cancel_grace_period")
    if isinstance(grace_raw, (int, float)) and not isinstance(grace_raw, bool) and grace_raw > 0:
        cancel_grace_period = float(grace_raw)
    else:
        cancel_grace_period = DEFAULT_CANCEL_GRACE

    length_raw = data.get("code_length")
    if isinstance(length_raw, int) and not isinstance(length_raw, bool) and MIN_CODE_LENGTH <= length_raw <= MAX_CODE_LENGTH:
        code_length = length_raw
    else:
        code_length = DEFAULT_CODE_LENGTH

    port_value = data.get("transit_port")
    transit_port = port_value if isinstance(port_value, int) and 1 <= port_value <= 65535 else None

    return AppConfig(
        language=language,
        qr_enabled=_coerce_bool(data.get("qr_enabled"), False),
        clipboard_enabled=_coerce_bool(data.get("clipboard_enabled"), False),
        auto_accept=_coerce_bool(data.get("auto_accept"), False),
        download_dir=_coerce_directory(data.get("download_dir")),
        cancel_grace_period=cancel_grace_period,
        code_length=code_length,
        transit_port=transit_port,
    )


def save_config(config: AppConfig) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    payload = asdict(config)
    with CONFIG_FILE.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2)


def resolve_download_dir(config: AppConfig, override: Optional[str] = None) -> Path:
    """Return the directory received files land in, creating it if necessary.

    Precedence: explicit override, then the configured directory, then the
    current working directory. Raises OSError when the directory cannot be
    created.
    """

    candidate = override or config.download_dir
    if not candidate:
        return Path.cwd()
    path = Path(candidate).expanduser()
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path
