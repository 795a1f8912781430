"""Resizing and re-encoding images to a standard size, colour model and format."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO

from PIL import Image

DEFAULT_PNG_COMPRESSION = 6
BEST_PNG_COMPRESSION = 9

_STANDARD_MODES = frozenset({"RGBA"})
_JPEG_MODES = frozenset({"RGB", "L", "CMYK"})


@dataclass
class NormalizationConfig:
    """Limits and output settings for image normalisation."""

    max_width: int = 1920
    max_height: int = 1080
    png_compression_level: int = DEFAULT_PNG_COMPRESSION
    jpeg_quality: int = 85
    output_format: str = "png"
    max_file_size: int = 5 * 1024 * 1024
    keep_aspect_ratio: bool = True


def default_normalization_config() -> NormalizationConfig:
    """Return the settings used for ordinary screenshots."""
    return NormalizationConfig()


def document_normalization_config() -> NormalizationConfig:
    """Return the settings used for document-like images."""
    return NormalizationConfig(
        max_width=800,
        max_height=600,
        png_compression_level=BEST_PNG_COMPRESSION,
        jpeg_quality=90,
        output_format="png",
        max_file_size=2 * 1024 * 1024,
        keep_aspect_ratio=True,
    )


def _extension(name: str) -> str:
    """Return the suffix from the last dot of the last path element, dot included."""
    for index in range(len(name) - 1, -1, -1):
        char = name[index]
        if char in "/\\":
            return ""
        if char == ".":
            return name[index:]
    return ""


class ImageNormalizer:
    """Brings images within size limits and into RGBA."""

    def __init__(
        self,
        config: NormalizationConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config if config is not None else default_normalization_config()
        self.logger = logger or logging.getLogger(__name__)

    def normalize_image(self, img: Image.Image) -> Image.Image:
        """Return a resized RGBA copy of the image."""
        self.logger.debug("normalizing image")
        resized = self._resize_image(img)
        rgba = resized.convert("RGBA")
        self.logger.debug("image normalized to %dx%d", rgba.width, rgba.height)
        return rgba

    def normalize_file(self, input_path: str, output_path: str) -> None:
        """Normalise the image in one file and write it to another."""
        self.logger.debug("normalizing file %s -> %s", input_path, output_path)
        with Image.open(input_path) as source:
            source.load()
            self.logger.debug(
                "source format %s, size %dx%d", source.format, source.width, source.height
            )
            normalized = self.normalize_image(source)
        with open(output_path, "wb") as stream:
            self.encode_image(normalized, stream)

    def _resize_image(self, img: Image.Image) -> Image.Image:
        width, height = img.size
        config = self.config
        if width <= config.max_width and height <= config.max_height:
            self.logger.debug("image size within limits, no resize needed")
            return img

        if config.keep_aspect_ratio:
            ratio = min(config.max_width / width, config.max_height / height)
            new_width = max(1, int(width * ratio))
            new_height = max(1, int(height * ratio))
        else:
            new_width = config.max_width
            new_height = config.max_height

        self.logger.debug("resizing %dx%d -> %dx%d", width, height, new_width, new_height)
        return img.resize((new_width, new_height), Image.Resampling.LANCZOS)

    def encode_image(self, img: Image.Image, stream: BinaryIO) -> None:
        """Write the image to a binary stream in the configured format (PNG by default)."""
        image_format = self.config.output_format.lower()
        if image_format in ("jpg", "jpeg"):
            if img.mode not in _JPEG_MODES:
                img = img.convert("RGB")
            img.save(stream, format="JPEG", quality=self.config.jpeg_quality)
        else:
            img.save(stream, format="PNG", compress_level=self.config.png_compression_level)

    def generate_standardized_filename(self, original_name: str) -> str:
        """Return ``<name>_normalized_<YYYYmmdd_HHMMSS><ext>`` for a file name."""
        ext = _extension(original_name)
        name = original_name[: len(original_name) - len(ext)] if ext else original_name
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{name}_normalized_{stamp}{ext}"

    def validate_image(self, img: Image.Image) -> list[str]:
        """Return the ways in which the image falls short of the standard."""
        issues = []
        if img.width > self.config.max_width:
            issues.append("图片宽度超过限制")
        if img.height > self.config.max_height:
            issues.append("图片高度超过限制")
        if img.mode not in _STANDARD_MODES:
            issues.append("图片色彩格式不是标准RGBA格式")
        return issues

    def get_image_info(self, img: Image.Image) -> dict[str, Any]:
        """Return the size, colour model and bounds of an image."""
        return {
            "width": img.width,
            "height": img.height,
            "color_model": img.mode,
            "bounds": f"(0,0)-({img.width},{img.height})",
        }