"""
Configuration tests.

Run with: pytest tests/test_config.py -v
"""

import pytest
import yaml

from idml_core.config import EngineConfig, get_default_config, load_config, save_config


class TestEngineConfig:
    """Tests for EngineConfig defaults and serialization."""

    def test_defaults(self):
        config = get_default_config()
        assert config.tags.convention == "tag-based"
        assert config.tags.markup_prefix == "XMLTag/"
        assert config.packaging.stored_entries == ["mimetype"]
        assert config.cache.policy == "refresh_if_empty"
        assert config.temp_path is None

    def test_from_dict_partial(self):
        config = EngineConfig.from_dict({
            "packaging": {"export_prefix": "weekly"},
            "output_dir": "/srv/exports",
        })
        assert config.packaging.export_prefix == "weekly"
        assert config.packaging.link_dir_name == "Links"
        assert str(config.output_path) == "/srv/exports"

    @pytest.mark.parametrize("suffix", [".yaml", ".yml", ".json"])
    def test_save_and_load(self, tmp_path, suffix):
        config = EngineConfig()
        config.cache.policy = "cached"
        config.tags.image_prefixes = ["fig"]
        path = tmp_path / f"config{suffix}"

        save_config(config, path)
        loaded = load_config(path)

        assert loaded.to_dict() == config.to_dict()

    def test_load_yaml_written_by_hand(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump({"download_base_url": "https://cdn.example/exports"}))
        assert load_config(path).download_base_url == "https://cdn.example/exports"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path).to_dict() == EngineConfig().to_dict()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[x]")
        with pytest.raises(ValueError):
            load_config(path)
        with pytest.raises(ValueError):
            save_config(EngineConfig(), tmp_path / "out.ini")
