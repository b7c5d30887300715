from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]  # .../class-catalog
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int | None = None) -> int | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


def _get_float(*keys: str, default: float | None = None) -> float | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return float(v)


def _get_bool(*keys: str, default: bool = False) -> bool:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


def _get_path(*keys: str, default: str) -> str:
    v = _get_env(*keys, default=default)
    return str(v)


def _get_list(*keys: str, default: str = "") -> Tuple[str, ...]:
    v = _get_env(*keys, default=default) or ""
    return tuple(p.strip() for p in v.split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    db_path: str
    db_timeout: float
    uploads_dir: str
    export_dir: str
    session_secret: str
    session_max_age: int
    admin_passcode: str
    user_password: str
    currency: str
    decimals: int
    sheets_timeout: float
    sheets_sync_interval: int
    sheets_auto_sync_thread: bool
    bulk_workers: int
    order_id_start: int
    max_video_mb: int
    max_sheet_mb: int
    pdf_font_path: str
    log_level: str
    api_base_url: str
    cart_ttl_hours: int
    order_history_limit: int
    host: str
    port: int
    cors_origins: Tuple[str, ...] = field(default_factory=tuple)


settings = Settings(
    db_path=_get_path("DB_PATH", "DB_FILE", default=str(ROOT_DIR / "data" / "catalog.db")),
    db_timeout=_get_float("DB_TIMEOUT", default=10.0) or 10.0,
    uploads_dir=_get_path("UPLOADS_DIR", default=str(ROOT_DIR / "uploads")),
    export_dir=_get_path("EXPORT_DIR", default=str(ROOT_DIR / "exports")),
    session_secret=_get_env("SESSION_SECRET", default="class-catalog-dev-secret") or "class-catalog-dev-secret",
    session_max_age=_get_int("SESSION_MAX_AGE", default=24 * 60 * 60) or 24 * 60 * 60,
    admin_passcode=_get_env("ADMIN_PASSCODE", "ADMIN_PASSWORD", default="admin123") or "admin123",
    # пустой USER_PASSWORD = вход пользователя без пароля
    user_password=_get_env("USER_PASSWORD", default="") or "",
    currency=_get_env("CURRENCY", default="USD") or "USD",
    decimals=_get_int("DECIMALS", default=2),
    sheets_timeout=_get_float("SHEETS_TIMEOUT", default=30.0) or 30.0,
    sheets_sync_interval=_get_int("SHEETS_SYNC_INTERVAL", default=300) or 300,
    sheets_auto_sync_thread=_get_bool("SHEETS_AUTO_SYNC_THREAD", default=True),
    bulk_workers=_get_int("BULK_WORKERS", default=4),
    order_id_start=_get_int("ORDER_ID_START", default=1000),
    max_video_mb=_get_int("MAX_VIDEO_MB", default=500) or 500,
    max_sheet_mb=_get_int("MAX_SHEET_MB", default=20) or 20,
    pdf_font_path=_get_env("PDF_FONT_PATH", default="") or "",
    log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
    api_base_url=_get_env("API_BASE_URL", default="http://localhost:4000") or "http://localhost:4000",
    cart_ttl_hours=_get_int("CART_TTL_HOURS", default=24) or 24,
    order_history_limit=_get_int("ORDER_HISTORY_LIMIT", default=50) or 50,
    host=_get_env("HOST", default="0.0.0.0") or "0.0.0.0",
    port=_get_int("PORT", default=4000) or 4000,
    cors_origins=_get_list(
        "CORS_ORIGINS",
        default="http://localhost:5173,http://localhost:3000",
    ),
)

if settings.bulk_workers < 1:
    raise RuntimeError("BULK_WORKERS must be >= 1")
if settings.decimals < 0:
    raise RuntimeError("DECIMALS must be >= 0")
