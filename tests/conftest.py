"""Shared pytest fixtures for the detector tests."""

import io
import struct
import zlib

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from authenticity.app import create_app
from authenticity.config import Settings
from authenticity.detector import ChannelStats, ImageStatistics
from authenticity.storage import MemStorage


def make_stats(
    width=1000,
    height=700,
    means=(120.0, 100.0, 80.0),
    stdevs=(20.0, 20.0, 20.0),
    has_exif=False,
    byte_length=None,
    compression_ratio=0.2,
):
    """ImageStatistics whose checks are neutral unless overridden.

    The defaults give a 0.2 compression ratio, mid-range noise and brightness,
    a non-AI aspect ratio and an rgb variation of exactly 40.
    """
    channels = tuple(ChannelStats(mean=m, stdev=s) for m, s in zip(means, stdevs))
    if byte_length is None:
        byte_length = int(round(compression_ratio * width * height * len(channels)))
    return ImageStatistics(
        width=width,
        height=height,
        channel_count=len(channels),
        channel_stats=channels,
        has_exif=has_exif,
        byte_length=byte_length,
    )


def encode(img, fmt="PNG", **params):
    buf = io.BytesIO()
    img.save(buf, format=fmt, **params)
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Image fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def flat_png_bytes():
    """512x512 uniform gray PNG: smooth, tiny, square, no EXIF."""
    return encode(Image.new("RGB", (512, 512), (128, 128, 128)))


@pytest.fixture()
def noisy_jpeg_with_exif_bytes():
    """Random-noise JPEG carrying a camera make/model EXIF block."""
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(300, 401, 3), dtype=np.uint8)
    img = Image.fromarray(pixels)
    exif = Image.Exif()
    exif[0x010F] = "Canon"
    exif[0x0110] = "EOS 5D"
    return encode(img, "JPEG", quality=95, exif=exif.tobytes())


def _png_chunk(tag, data):
    return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", zlib.crc32(tag + data) & 0xFFFFFFFF)


@pytest.fixture()
def oversized_header_png_bytes():
    """A few hundred bytes of PNG whose header claims 20000x20000 pixels."""
    ihdr = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", ihdr)
        + _png_chunk(b"IDAT", zlib.compress(b"\x00" * 64))
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture()
def truncated_png_bytes():
    """PNG whose header is intact but whose pixel data is cut off."""
    rng = np.random.default_rng(11)
    pixels = rng.integers(0, 256, size=(256, 256, 3), dtype=np.uint8)
    data = encode(Image.fromarray(pixels))
    return data[: len(data) // 3]


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings():
    return Settings(max_upload_bytes=1024 * 1024)


@pytest.fixture()
def storage():
    return MemStorage()


@pytest.fixture()
def client(settings, storage):
    return TestClient(create_app(settings=settings, storage=storage))
