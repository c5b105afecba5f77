# halftone_config.py
# Environment-driven settings shared by the halftone service and pipeline.

import os
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Optional, Tuple

SERVICE_NAME = "Halftone Service"
SERVICE_VERSION = "3.0.0"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(float(raw))
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {raw!r}")


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def _default_build_id() -> str:
    return "dev_" + datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class HalftoneSettings:
    """Process-wide limits and integration settings."""

    max_upload_bytes: int = 25 * 1024 * 1024
    max_image_pixels: int = 50_000_000
    hard_max_width: int = 3600
    soft_max_width: int = 3200
    min_cell: int = 8
    max_cell: int = 30
    max_concurrent_jobs: int = 1
    max_cells_estimate: int = 700_000

    url_expires_seconds: int = 600
    allowed_origins: Tuple[str, ...] = ("*",)
    build_id: str = field(default_factory=_default_build_id)
    log_level: str = "INFO"
    port: int = 8006

    r2_endpoint: Optional[str] = None
    r2_bucket: Optional[str] = None
    r2_region: Optional[str] = None
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None

    @property
    def storage_configured(self) -> bool:
        return all([
            self.r2_endpoint,
            self.r2_bucket,
            self.r2_region,
            self.r2_access_key_id,
            self.r2_secret_access_key,
        ])

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "HalftoneSettings":
        env = os.environ if env is None else env
        defaults = cls()

        origins = _env_str(env, "ALLOWED_ORIGINS") or "*"
        allowed = tuple(o.strip() for o in origins.split(",") if o.strip()) or ("*",)

        settings = cls(
            max_upload_bytes=_env_int(env, "MAX_UPLOAD_BYTES", defaults.max_upload_bytes),
            max_image_pixels=_env_int(env, "MAX_IMAGE_PIXELS", defaults.max_image_pixels),
            hard_max_width=_env_int(env, "HARD_MAX_WIDTH", defaults.hard_max_width),
            soft_max_width=_env_int(env, "SOFT_MAX_WIDTH", defaults.soft_max_width),
            min_cell=_env_int(env, "MIN_CELL", defaults.min_cell),
            max_cell=_env_int(env, "MAX_CELL", defaults.max_cell),
            max_concurrent_jobs=_env_int(env, "MAX_CONCURRENT_JOBS", defaults.max_concurrent_jobs),
            max_cells_estimate=_env_int(env, "MAX_CELLS_ESTIMATE", defaults.max_cells_estimate),
            url_expires_seconds=_env_int(env, "URL_EXPIRES_SECONDS", defaults.url_expires_seconds),
            allowed_origins=allowed,
            build_id=_env_str(env, "BUILD_ID") or defaults.build_id,
            log_level=(_env_str(env, "LOG_LEVEL") or defaults.log_level).upper(),
            port=_env_int(env, "PORT", defaults.port),
            r2_endpoint=_env_str(env, "R2_ENDPOINT"),
            r2_bucket=_env_str(env, "R2_BUCKET"),
            r2_region=_env_str(env, "R2_REGION"),
            r2_access_key_id=_env_str(env, "R2_ACCESS_KEY_ID"),
            r2_secret_access_key=_env_str(env, "R2_SECRET_ACCESS_KEY"),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.min_cell < 1 or self.max_cell < self.min_cell:
            raise ValueError(f"Invalid cell range [{self.min_cell}, {self.max_cell}]")
        if self.hard_max_width < 1:
            raise ValueError("HARD_MAX_WIDTH must be positive")
        if self.max_concurrent_jobs < 1:
            raise ValueError("MAX_CONCURRENT_JOBS must be at least 1")
        for name in ("max_upload_bytes", "max_image_pixels", "max_cells_estimate"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be positive")


def configure_logging(level: str = "INFO") -> logging.Logger:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    return logging.getLogger(SERVICE_NAME)
