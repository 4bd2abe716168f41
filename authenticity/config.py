from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Tuple

ENV_PREFIX = "AUTHENTICITY_"

ALLOWED_CONTENT_TYPES: Tuple[str, ...] = ("image/jpeg", "image/jpg", "image/png", "image/webp")


@dataclass(frozen=True)
class ScoringThresholds:
    """Numeric knobs of the heuristic scorer. Defaults are the tuned values."""

    base_score: int = 30

    low_compression_ratio: float = 0.1
    high_compression_ratio: float = 0.4
    low_compression_points: int = 15
    high_compression_points: int = -10

    low_noise: float = 12.0
    high_noise: float = 30.0
    low_noise_points: int = 25
    high_noise_points: int = -15

    dark_brightness: float = 50.0
    bright_brightness: float = 200.0
    brightness_points: int = 10

    ai_aspect_ratios: Tuple[float, ...] = (1.0, 1.5, 0.75, 1.33, 1.77)
    aspect_tolerance: float = 0.05
    dimension_multiple: int = 64
    dimension_points: int = 15

    missing_exif_points: int = 25
    exif_present_points: int = -20

    expected_bytes_per_pixel: float = 0.5
    low_size_ratio: float = 0.1
    size_ratio_points: int = 10

    balanced_rgb_variation: float = 5.0
    natural_rgb_variation: float = 40.0
    balanced_rgb_points: int = 15

    ai_midpoint: int = 50
    min_confidence: int = 65
    max_confidence: int = 95
    max_indicators: int = 4
    min_indicators: int = 3
    ai_fillers: Tuple[str, ...] = ("Pixel uniformity patterns", "Texture smoothness")
    real_fillers: Tuple[str, ...] = ("Camera sensor artifacts", "Natural lighting variations")


DEFAULT_THRESHOLDS = ScoringThresholds()


def _env(name: str, default: str) -> str:
    return os.environ.get(ENV_PREFIX + name, default).strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")


@dataclass
class Settings:
    db_path: str = ""
    max_upload_bytes: int = 10 * 1024 * 1024
    recent_limit: int = 10
    max_recent_limit: int = 100
    cors_origins: Tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    allowed_content_types: Tuple[str, ...] = ALLOWED_CONTENT_TYPES
    thresholds: ScoringThresholds = field(default_factory=ScoringThresholds)

    @property
    def max_upload_mb(self) -> int:
        return self.max_upload_bytes // (1024 * 1024)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = tuple(o.strip() for o in _env("CORS_ORIGINS", "*").split(",") if o.strip())
        return cls(
            db_path=_env("DB_PATH", ""),
            max_upload_bytes=_env_int("MAX_UPLOAD_MB", 10) * 1024 * 1024,
            recent_limit=_env_int("RECENT_LIMIT", 10),
            max_recent_limit=_env_int("MAX_RECENT_LIMIT", 100),
            cors_origins=origins or ("*",),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    # basicConfig is a no-op once the root logger has handlers (e.g. under uvicorn)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
