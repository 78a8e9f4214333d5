"""Tests for the YAML storage configuration and process settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ascfs.config import AscfsSettings
from ascfs.exceptions import ConfigurationError
from ascfs.storage.config import load_storage_config

if TYPE_CHECKING:
    from pathlib import Path

CONFIG = """
handlers:
  - name: disc
    type: ascfs.storage.disc.DiscDataStore
    properties:
      $STORAGE_ROOT: /srv/data
modules:
  - name: files
    path: $STORAGE_ROOT/Products/Files
    domains:
      - name: files_temp
        count: false
      - name: hidden
        visible: false
  - name: logo
    disable_migrate: true
  - name: backup
    visible: false
consumers:
  - name: s3
    type: ascfs.storage.s3.S3DataStore
    required: [bucket, access_key, secret_key]
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "storage.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadStorageConfig:
    def test_parses_sections(self, tmp_path: Path):
        config = load_storage_config(_write(tmp_path, CONFIG))

        handler = config.get_handler("DISC")
        assert handler is not None
        assert handler.properties == {"$STORAGE_ROOT": "/srv/data"}

        files = config.get_module_element("Files")
        assert files is not None
        assert files.type == "disc"
        assert files.count
        temp = files.get_domain("files_temp")
        assert temp is not None
        assert not temp.count

        assert config.consumers[0].required == ["bucket", "access_key", "secret_key"]

    def test_module_and_domain_lists(self, tmp_path: Path):
        config = load_storage_config(_write(tmp_path, CONFIG))
        assert config.get_module_list() == ["files", "logo"]
        assert config.get_module_list(except_disabled_migration=True) == ["files"]
        assert config.get_domain_list("files") == ["files_temp"]
        assert config.get_domain_list("nope") == []

    def test_empty_file(self, tmp_path: Path):
        config = load_storage_config(_write(tmp_path, ""))
        assert config.modules == []

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_storage_config(tmp_path / "absent.yaml")

    def test_bad_yaml(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            load_storage_config(_write(tmp_path, "modules: [unclosed"))

    def test_invalid_shape(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="Invalid"):
            load_storage_config(_write(tmp_path, "modules:\n  - type: disc\n"))


class TestSettings:
    def test_provider_list_separators(self):
        settings = AscfsSettings(thirdparty_enable="box, webdav|google||")
        assert settings.thirdparty_providers == ["box", "webdav", "google"]

    def test_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ASCFS_STANDALONE", "true")
        monkeypatch.setenv("ASCFS_STORAGE_ROOT", "/srv/files")
        settings = AscfsSettings()
        assert settings.standalone
        assert settings.storage_root == "/srv/files"
