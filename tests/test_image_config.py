import json
import os

import pytest

from remindify.image_config import (
    ConfigManager,
    ImageConfigError,
    ImageProcessingConfig,
    get_config_path,
    load_or_create_config,
)
from remindify.image_normalizer import ImageNormalizer, NormalizationConfig


def _config_in(tmp_path, **overrides):
    config = ImageProcessingConfig(
        debug_output_dir=str(tmp_path / "debug"),
        cache_dir=str(tmp_path / "cache"),
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def test_validate_requires_normalization():
    with pytest.raises(ImageConfigError, match="标准化配置不能为空"):
        ImageProcessingConfig(normalization=None).validate()


@pytest.mark.parametrize(
    "norm, message",
    [
        (NormalizationConfig(max_width=0), "图片最大尺寸必须大于0"),
        (NormalizationConfig(max_height=-1), "图片最大尺寸必须大于0"),
        (NormalizationConfig(jpeg_quality=101), "JPEG质量必须在1-100之间"),
        (NormalizationConfig(jpeg_quality=0), "JPEG质量必须在1-100之间"),
        (NormalizationConfig(max_file_size=0), "文件大小限制必须大于0"),
        (NormalizationConfig(output_format="gif"), "不支持的输出格式: gif"),
    ],
)
def test_validate_rejects_bad_values(norm, message):
    with pytest.raises(ImageConfigError, match=message):
        ImageProcessingConfig(normalization=norm).validate()


def test_get_config_path(tmp_path):
    path = get_config_path(str(tmp_path))
    assert os.path.basename(path) == "image_processing.json"
    assert os.path.dirname(path) == str(tmp_path)


def test_save_and_load_round_trip(tmp_path):
    path = str(tmp_path / "sub" / "image_processing.json")
    config = _config_in(tmp_path, debug_mode=True, max_cache_files=7)
    config.normalization.output_format = "jpeg"
    config.normalization.max_width = 640
    config.save_to_file(path)

    loaded = ImageProcessingConfig()
    loaded.load_from_file(path)
    assert loaded == config


def test_saved_file_uses_json_field_names(tmp_path):
    path = str(tmp_path / "image_processing.json")
    ImageProcessingConfig().save_to_file(path)
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    assert data["max_cache_files"] == 50
    assert data["normalization"]["MaxWidth"] == 1920
    assert data["normalization"]["OutputFormat"] == "png"


def test_load_missing_file_writes_defaults(tmp_path):
    path = str(tmp_path / "image_processing.json")
    config = ImageProcessingConfig()
    config.load_from_file(path)
    assert os.path.exists(path)
    reread = ImageProcessingConfig(normalization=None)
    reread.load_from_file(path)
    assert reread == ImageProcessingConfig()


def test_load_partial_file_keeps_other_values(tmp_path):
    path = tmp_path / "image_processing.json"
    path.write_text(json.dumps({"debug_mode": True}), encoding="utf-8")
    config = ImageProcessingConfig()
    config.load_from_file(str(path))
    assert config.debug_mode is True
    assert config.normalization == NormalizationConfig()
    assert config.max_cache_files == ImageProcessingConfig().max_cache_files


def test_load_invalid_json_raises(tmp_path):
    path = tmp_path / "image_processing.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ImageConfigError, match="解析配置文件失败"):
        ImageProcessingConfig().load_from_file(str(path))


def test_load_invalid_values_raises(tmp_path):
    path = tmp_path / "image_processing.json"
    path.write_text(json.dumps({"normalization": {"JPEGQuality": 500}}), encoding="utf-8")
    with pytest.raises(ImageConfigError, match="配置验证失败"):
        ImageProcessingConfig().load_from_file(str(path))


def test_load_or_create_config_replaces_bad_file(tmp_path):
    path = tmp_path / "image_processing.json"
    path.write_text(json.dumps({"normalization": None}), encoding="utf-8")
    config = load_or_create_config(str(tmp_path))
    assert config == ImageProcessingConfig()
    reread = ImageProcessingConfig()
    reread.load_from_file(str(path))
    assert reread == ImageProcessingConfig()


def test_manager_normalizer_follows_setting(tmp_path):
    manager = ConfigManager(str(tmp_path))
    config = manager.load_config()
    assert manager.is_normalization_enabled() is True
    normalizer = manager.get_normalizer()
    assert isinstance(normalizer, ImageNormalizer)
    assert normalizer.config == config.normalization

    manager.update_config(_config_in(tmp_path, enable_normalization=False))
    assert manager.is_normalization_enabled() is False
    assert manager.get_normalizer() is None


def test_manager_before_load():
    manager = ConfigManager("unused")
    assert manager.is_normalization_enabled() is False
    with pytest.raises(ImageConfigError):
        manager.is_cache_enabled()


def test_update_config_rejects_invalid(tmp_path):
    manager = ConfigManager(str(tmp_path))
    with pytest.raises(ImageConfigError, match="配置验证失败"):
        manager.update_config(ImageProcessingConfig(normalization=None))
    assert manager.config is None
    assert not os.path.exists(get_config_path(str(tmp_path)))


def test_update_config_saves(tmp_path):
    manager = ConfigManager(str(tmp_path))
    new_config = _config_in(tmp_path, max_cache_files=3)
    manager.update_config(new_config)
    reread = ImageProcessingConfig()
    reread.load_from_file(get_config_path(str(tmp_path)))
    assert reread == new_config


def test_save_cache_image(tmp_path):
    manager = ConfigManager(str(tmp_path))
    manager.update_config(_config_in(tmp_path))
    path = manager.save_cache_image(b"\x89PNG data", "shot.png")
    assert path == os.path.join(manager.cache_dir, "shot.png")
    with open(path, "rb") as handle:
        assert handle.read() == b"\x89PNG data"


def test_save_cache_image_disabled(tmp_path):
    manager = ConfigManager(str(tmp_path))
    manager.update_config(_config_in(tmp_path, enable_cache=False))
    assert manager.is_cache_enabled() is False
    assert manager.save_cache_image(b"data", "shot.png") is None
    assert not os.path.exists(manager.cache_dir)


def test_cache_cleanup_removes_oldest(tmp_path):
    manager = ConfigManager(str(tmp_path))
    manager.update_config(_config_in(tmp_path, max_cache_files=2))
    cache_dir = manager.cache_dir
    os.makedirs(cache_dir)
    for name, mtime in (("old1.png", 1000), ("old2.png", 2000), ("old3.png", 3000)):
        file_path = os.path.join(cache_dir, name)
        with open(file_path, "wb") as handle:
            handle.write(b"x")
        os.utime(file_path, (mtime, mtime))

    manager.save_cache_image(b"new", "new.png")
    assert sorted(os.listdir(cache_dir)) == ["new.png", "old2.png", "old3.png"]


def test_save_debug_image(tmp_path):
    manager = ConfigManager(str(tmp_path))
    manager.update_config(_config_in(tmp_path))
    assert manager.save_debug_image(b"img", "d.png") is None
    assert not os.path.exists(tmp_path / "debug")

    manager.update_config(_config_in(tmp_path, debug_mode=True))
    path = manager.save_debug_image(b"img", "d.png")
    assert path == os.path.join(str(tmp_path / "debug"), "d.png")
    with open(path, "rb") as handle:
        assert handle.read() == b"img"