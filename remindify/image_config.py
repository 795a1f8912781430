"""Settings for image processing and the manager that stores and applies them."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from remindify.image_normalizer import (
    ImageNormalizer,
    NormalizationConfig,
    default_normalization_config,
)

CONFIG_FILE_NAME = "image_processing.json"
VALID_OUTPUT_FORMATS = frozenset({"png", "jpg", "jpeg"})

_NORMALIZATION_FIELDS = (
    ("MaxWidth", "max_width", int),
    ("MaxHeight", "max_height", int),
    ("PNGCompressionLevel", "png_compression_level", int),
    ("JPEGQuality", "jpeg_quality", int),
    ("OutputFormat", "output_format", str),
    ("MaxFileSize", "max_file_size", int),
    ("KeepAspectRatio", "keep_aspect_ratio", bool),
)

_CONFIG_FIELDS = (
    ("enable_normalization", bool),
    ("debug_mode", bool),
    ("debug_output_dir", str),
    ("enable_cache", bool),
    ("cache_dir", str),
    ("max_cache_files", int),
)


class ImageConfigError(Exception):
    """Raised when image settings cannot be read, written or accepted."""


def _checked(value: Any, kind: type, key: str) -> Any:
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ImageConfigError(f"field {key!r} must be an integer")
    elif not isinstance(value, kind):
        raise ImageConfigError(f"field {key!r} must be of type {kind.__name__}")
    return value


def _normalization_to_json(config: NormalizationConfig | None) -> dict[str, Any] | None:
    if config is None:
        return None
    return {key: getattr(config, attr) for key, attr, _ in _NORMALIZATION_FIELDS}


def _apply_normalization(config: NormalizationConfig, data: dict[str, Any]) -> None:
    for key, attr, kind in _NORMALIZATION_FIELDS:
        if key in data and data[key] is not None:
            setattr(config, attr, _checked(data[key], kind, key))


def _empty_normalization() -> NormalizationConfig:
    return NormalizationConfig(0, 0, 0, 0, "", 0, False)


@dataclass
class ImageProcessingConfig:
    """How clipboard images are normalised, cached and kept for debugging."""

    normalization: NormalizationConfig | None = field(
        default_factory=default_normalization_config
    )
    enable_normalization: bool = True
    debug_mode: bool = False
    debug_output_dir: str = os.path.join("debug", "images")
    enable_cache: bool = True
    cache_dir: str = os.path.join("cache", "images")
    max_cache_files: int = 50

    def _to_json(self) -> dict[str, Any]:
        result: dict[str, Any] = {"normalization": _normalization_to_json(self.normalization)}
        for key, _ in _CONFIG_FIELDS:
            result[key] = getattr(self, key)
        return result

    def _apply_json(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise ImageConfigError("configuration must be a JSON object")
        if "normalization" in data:
            value = data["normalization"]
            if value is None:
                self.normalization = None
            elif isinstance(value, dict):
                if self.normalization is None:
                    self.normalization = _empty_normalization()
                _apply_normalization(self.normalization, value)
            else:
                raise ImageConfigError("field 'normalization' must be an object")
        for key, kind in _CONFIG_FIELDS:
            if key in data and data[key] is not None:
                setattr(self, key, _checked(data[key], kind, key))

    def load_from_file(self, config_path: str) -> None:
        """Read settings from a JSON file over the current ones.

        A missing file is created with the default settings.
        """
        if not os.path.exists(config_path):
            ImageProcessingConfig().save_to_file(config_path)
            return
        try:
            with open(config_path, encoding="utf-8") as handle:
                data = json.load(handle)
        except OSError as err:
            raise ImageConfigError(f"读取配置文件失败: {err}") from err
        except ValueError as err:
            raise ImageConfigError(f"解析配置文件失败: {err}") from err
        try:
            self._apply_json(data)
        except ImageConfigError as err:
            raise ImageConfigError(f"解析配置文件失败: {err}") from err
        try:
            self.validate()
        except ImageConfigError as err:
            raise ImageConfigError(f"配置验证失败: {err}") from err

    def save_to_file(self, config_path: str) -> None:
        """Write the settings as indented JSON, creating the directory."""
        directory = os.path.dirname(config_path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as err:
            raise ImageConfigError(f"创建配置目录失败: {err}") from err
        data = json.dumps(self._to_json(), indent=2, ensure_ascii=False)
        try:
            with open(config_path, "w", encoding="utf-8") as handle:
                handle.write(data)
        except OSError as err:
            raise ImageConfigError(f"写入配置文件失败: {err}") from err

    def validate(self) -> None:
        """Raise ImageConfigError when a setting is out of range."""
        norm = self.normalization
        if norm is None:
            raise ImageConfigError("标准化配置不能为空")
        if norm.max_width <= 0 or norm.max_height <= 0:
            raise ImageConfigError("图片最大尺寸必须大于0")
        if not 1 <= norm.jpeg_quality <= 100:
            raise ImageConfigError("JPEG质量必须在1-100之间")
        if norm.max_file_size <= 0:
            raise ImageConfigError("文件大小限制必须大于0")
        if norm.output_format not in VALID_OUTPUT_FORMATS:
            raise ImageConfigError(f"不支持的输出格式: {norm.output_format}")

    def ensure_debug_dir(self) -> None:
        """Create the debug directory when debug mode is on."""
        if self.debug_mode:
            os.makedirs(self.debug_output_dir, exist_ok=True)

    def ensure_cache_dir(self) -> None:
        """Create the cache directory when caching is on."""
        if self.enable_cache:
            os.makedirs(self.cache_dir, exist_ok=True)


def get_config_path(config_dir: str) -> str:
    """Return the path of the image settings file in a directory."""
    return os.path.join(config_dir, CONFIG_FILE_NAME)


def load_or_create_config(
    config_dir: str, logger: logging.Logger | None = None
) -> ImageProcessingConfig:
    """Load the settings, falling back to (and saving) the defaults on any failure."""
    logger = logger or logging.getLogger(__name__)
    config_path = get_config_path(config_dir)
    config = ImageProcessingConfig()
    try:
        config.load_from_file(config_path)
    except ImageConfigError as err:
        logger.warning("failed to load image processing config, using defaults: %s", err)
        config = ImageProcessingConfig()
        try:
            config.save_to_file(config_path)
        except ImageConfigError as save_err:
            logger.warning("failed to save default config: %s", save_err)
        else:
            logger.info("created default image processing config: %s", config_path)

    logger.info(
        "image normalization: %s", "enabled" if config.enable_normalization else "disabled"
    )
    if config.enable_normalization and config.normalization is not None:
        norm = config.normalization
        logger.info("image size limit: %dx%d", norm.max_width, norm.max_height)
        logger.info(
            "output format: %s, max file size: %d MB",
            norm.output_format,
            norm.max_file_size // (1024 * 1024),
        )
    return config


class ConfigManager:
    """Holds the image settings for a configuration directory and applies them."""

    def __init__(self, config_dir: str, logger: logging.Logger | None = None) -> None:
        self.config_dir = config_dir
        self.logger = logger or logging.getLogger(__name__)
        self.config: ImageProcessingConfig | None = None

    def _require(self) -> ImageProcessingConfig:
        if self.config is None:
            raise ImageConfigError("image processing configuration has not been loaded")
        return self.config

    def load_config(self) -> ImageProcessingConfig:
        """Load the settings from the configuration directory."""
        self.config = load_or_create_config(self.config_dir, self.logger)
        try:
            self.config.ensure_debug_dir()
        except OSError as err:
            self.logger.warning("failed to create debug directory: %s", err)
        return self.config

    def update_config(self, new_config: ImageProcessingConfig) -> None:
        """Validate, adopt and save new settings."""
        try:
            new_config.validate()
        except ImageConfigError as err:
            raise ImageConfigError(f"配置验证失败: {err}") from err
        self.config = new_config
        new_config.save_to_file(get_config_path(self.config_dir))

    def is_normalization_enabled(self) -> bool:
        """Return whether settings are loaded and normalisation is on."""
        return self.config is not None and self.config.enable_normalization

    def get_normalizer(self) -> ImageNormalizer | None:
        """Return a normaliser for the settings, or None when normalisation is off."""
        if not self.is_normalization_enabled():
            return None
        return ImageNormalizer(self._require().normalization, self.logger)

    def save_debug_image(self, img_data: bytes, filename: str) -> str | None:
        """Write an image to the debug directory in debug mode; return its path."""
        config = self._require()
        if not config.debug_mode:
            return None
        config.ensure_debug_dir()
        path = os.path.join(config.debug_output_dir, filename)
        with open(path, "wb") as handle:
            handle.write(img_data)
        return path

    def save_cache_image(self, img_data: bytes, filename: str) -> str | None:
        """Write an image to the cache directory when caching is on; return its path."""
        config = self._require()
        if not config.enable_cache:
            return None
        config.ensure_cache_dir()
        self._cleanup_cache()
        path = os.path.join(config.cache_dir, filename)
        with open(path, "wb") as handle:
            handle.write(img_data)
        self.logger.debug("image cached to %s", path)
        return path

    def _cleanup_cache(self) -> None:
        config = self._require()
        if config.max_cache_files <= 0:
            return
        try:
            entries = list(os.scandir(config.cache_dir))
        except OSError:
            return
        if len(entries) <= config.max_cache_files:
            return

        dated = []
        for entry in entries:
            try:
                dated.append((entry.stat().st_mtime, entry.path))
            except OSError:
                continue
        dated.sort(key=lambda item: item[0])

        to_delete = len(dated) - config.max_cache_files
        for _, path in dated[: max(to_delete, 0)]:
            try:
                os.remove(path)
            except OSError as err:
                self.logger.warning("failed to remove cache file %s: %s", path, err)
        if to_delete > 0:
            self.logger.debug("removed %d old cache files", to_delete)

    @property
    def cache_dir(self) -> str:
        """Directory where cached images are written."""
        return self._require().cache_dir

    def is_cache_enabled(self) -> bool:
        """Return whether image caching is on."""
        return self._require().enable_cache