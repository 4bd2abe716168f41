from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .config import DEFAULT_THRESHOLDS, ScoringThresholds

logger = logging.getLogger(__name__)

AI_GENERATED = "AI Generated"
REAL_IMAGE = "Real Image"
ANALYSIS_INCOMPLETE = "Analysis Incomplete"

INCOMPLETE_CONFIDENCE = 50
INCOMPLETE_INDICATORS: Tuple[str, ...] = ("Technical analysis error", "Manual review recommended")

# Modes whose bands map directly onto the channel statistics we report
_NATIVE_MODES = ("L", "LA", "RGB", "RGBA")


class InvalidImageError(ValueError):
    """The uploaded bytes are not a decodable image."""


@dataclass(frozen=True)
class ChannelStats:
    mean: float
    stdev: float


@dataclass(frozen=True)
class ImageStatistics:
    width: int
    height: int
    channel_count: int
    channel_stats: Tuple[ChannelStats, ...]
    has_exif: bool
    byte_length: int


@dataclass(frozen=True)
class ScoreResult:
    classification: str
    confidence: int
    indicators: Tuple[str, ...]

    @property
    def is_ai_generated(self) -> bool:
        return self.classification == AI_GENERATED


@dataclass(frozen=True)
class ImageAnalysis:
    width: int
    height: int
    result: ScoreResult
    statistics: ImageStatistics | None = None

    @property
    def dimensions(self) -> str:
        return f"{self.width}x{self.height}"


def incomplete_result() -> ScoreResult:
    return ScoreResult(
        classification=ANALYSIS_INCOMPLETE,
        confidence=INCOMPLETE_CONFIDENCE,
        indicators=INCOMPLETE_INDICATORS,
    )


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _is_ai_aspect(width: int, height: int, t: ScoringThresholds) -> bool:
    aspect = width / height
    common_ratio = any(abs(aspect - r) < t.aspect_tolerance for r in t.ai_aspect_ratios)
    return common_ratio and (width % t.dimension_multiple == 0 or height % t.dimension_multiple == 0)


def score(stats: ImageStatistics, thresholds: ScoringThresholds = DEFAULT_THRESHOLDS) -> ScoreResult:
    """Turn image statistics into a classification, confidence and indicators.

    Checks run in a fixed order and each may append one indicator; only the
    first ``max_indicators`` are kept, so the order is part of the result.
    """
    t = thresholds
    points = t.base_score
    indicators: List[str] = []

    width, height = stats.width, stats.height
    pixels = width * height
    channels = stats.channel_count or 3
    channel_stats = stats.channel_stats

    # 1. Compression ratio
    compression_ratio = stats.byte_length / (pixels * channels)
    if compression_ratio < t.low_compression_ratio:
        points += t.low_compression_points
        indicators.append("High compression ratio detected")
    elif compression_ratio > t.high_compression_ratio:
        points += t.high_compression_points
        indicators.append("Natural compression patterns")

    # 2. Noise: camera sensors leave more per-channel spread than generators
    if channel_stats:
        noise_variance = sum(c.stdev for c in channel_stats) / len(channel_stats)
        if noise_variance < t.low_noise:
            points += t.low_noise_points
            indicators.append("Unusually low noise variance")
        elif noise_variance > t.high_noise:
            points += t.high_noise_points
            indicators.append("Natural sensor noise patterns")

        # 3. Brightness
        mean_brightness = sum(c.mean for c in channel_stats) / len(channel_stats)
        if mean_brightness > t.bright_brightness or mean_brightness < t.dark_brightness:
            points += t.brightness_points
            indicators.append("Unusual brightness distribution")

    # 4. Aspect ratio and dimensions
    if _is_ai_aspect(width, height, t):
        points += t.dimension_points
        indicators.append("Dimension patterns typical of AI generation")
    else:
        indicators.append("Natural aspect ratio and dimensions")

    # 5. Metadata
    if not stats.has_exif:
        points += t.missing_exif_points
        indicators.append("Missing camera metadata (EXIF)")
    else:
        points += t.exif_present_points
        indicators.append("Camera metadata present")

    # 6. File size relative to dimensions
    expected_size = pixels * t.expected_bytes_per_pixel
    if stats.byte_length / expected_size < t.low_size_ratio:
        points += t.size_ratio_points
        indicators.append("Unusual file size compression")

    # 7. Channel correlation
    if stats.channel_count >= 3 and len(channel_stats) >= 3:
        rgb_variation = abs(channel_stats[0].mean - channel_stats[1].mean) + abs(
            channel_stats[1].mean - channel_stats[2].mean
        )
        if rgb_variation < t.balanced_rgb_variation:
            points += t.balanced_rgb_points
            indicators.append("Artificially balanced color channels")
        elif rgb_variation > t.natural_rgb_variation:
            indicators.append("Natural color variation")

    normalized = _clamp(points, 0, 100)
    is_ai = normalized > t.ai_midpoint
    raw_confidence = normalized if is_ai else 100 - normalized
    confidence = int(_clamp(round(raw_confidence), t.min_confidence, t.max_confidence))

    selected = indicators[: t.max_indicators]
    if len(selected) < t.min_indicators:
        selected.extend(t.ai_fillers if is_ai else t.real_fillers)

    return ScoreResult(
        classification=AI_GENERATED if is_ai else REAL_IMAGE,
        confidence=confidence,
        indicators=tuple(selected[: t.max_indicators]),
    )


def _open_image(image_bytes: bytes) -> Image.Image:
    try:
        im = Image.open(io.BytesIO(image_bytes))
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise InvalidImageError("Invalid image file") from e
    if not im.width or not im.height:
        im.close()
        raise InvalidImageError("Invalid image file")
    return im


def _has_exif(im: Image.Image) -> bool:
    if im.info.get("exif"):
        return True
    try:
        return len(im.getexif()) > 0
    except Exception:
        logger.debug("EXIF block could not be parsed", exc_info=True)
        return False


def _normalize_mode(im: Image.Image) -> Image.Image:
    if im.mode in _NATIVE_MODES:
        return im
    if im.mode in ("P", "PA") and ("transparency" in im.info or im.mode == "PA"):
        return im.convert("RGBA")
    return im.convert("RGB")


def _channel_stats(im: Image.Image) -> Tuple[ChannelStats, ...]:
    # Population stats from the 256-bin per-band histogram; no per-pixel float copy
    hist = np.asarray(im.histogram(), dtype=np.float64).reshape(len(im.getbands()), 256)
    levels = np.arange(256, dtype=np.float64)
    counts = hist.sum(axis=1)
    means = (hist * levels).sum(axis=1) / counts
    variances = (hist * levels**2).sum(axis=1) / counts - means**2
    stdevs = np.sqrt(np.clip(variances, 0.0, None))
    return tuple(ChannelStats(mean=float(m), stdev=float(s)) for m, s in zip(means, stdevs))


def _statistics_from_image(im: Image.Image, byte_length: int) -> ImageStatistics:
    im.load()
    has_exif = _has_exif(im)
    normalized = _normalize_mode(im)
    channel_stats = _channel_stats(normalized)
    return ImageStatistics(
        width=im.width,
        height=im.height,
        channel_count=len(channel_stats),
        channel_stats=channel_stats,
        has_exif=has_exif,
        byte_length=byte_length,
    )


def extract_statistics(image_bytes: bytes) -> ImageStatistics:
    with _open_image(image_bytes) as im:
        return _statistics_from_image(im, len(image_bytes))


def analyze_image(image_bytes: bytes, thresholds: ScoringThresholds = DEFAULT_THRESHOLDS) -> ImageAnalysis:
    """Decode, measure and score an encoded image.

    Raises InvalidImageError when the header cannot be read. Failures past
    that point yield the "Analysis Incomplete" result instead of raising.
    """
    with _open_image(image_bytes) as im:
        width, height = im.size
        try:
            stats = _statistics_from_image(im, len(image_bytes))
        except Exception:
            logger.exception("Statistics extraction failed for %dx%d image, using fallback", width, height)
            return ImageAnalysis(width=width, height=height, result=incomplete_result())

    result = score(stats, thresholds)
    logger.info(
        "Scored %dx%d image: %s (%d%%)", width, height, result.classification, result.confidence
    )
    return ImageAnalysis(width=width, height=height, result=result, statistics=stats)
