"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from flatdav.config import DEFAULT_MAX_UPLOAD_BYTES, FlatDavConfig, load_config


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "flatdav.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:
    def test_defaults(self):
        config = FlatDavConfig()
        assert config.server.host == "0.0.0.0"
        assert config.server.port == 8080
        assert config.server.shutdown_timeout == 30
        assert config.dav.max_upload_bytes == DEFAULT_MAX_UPLOAD_BYTES == 104857600
        assert config.storage.backend == "memory"
        assert config.auth.enabled is False
        assert config.observability.metrics is True

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = load_config(path)
        assert config.server.port == 8080

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")


class TestSections:
    def test_server_section(self, tmp_path):
        config = load_config(
            _write(tmp_path, {"server": {"host": "127.0.0.1", "port": 9000, "log_format": "json"}})
        )
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 9000
        assert config.server.log_format == "json"
        assert config.server.log_level == "INFO"

    def test_auth_section(self, tmp_path):
        config = load_config(
            _write(tmp_path, {"auth": {"username": "alice", "password": "s3cret"}})
        )
        assert config.auth.enabled is True
        assert config.auth.realm == "flatdav"

    def test_auth_needs_both_fields(self, tmp_path):
        config = load_config(_write(tmp_path, {"auth": {"username": "alice"}}))
        assert config.auth.enabled is False

    def test_null_password_disables_auth(self, tmp_path):
        config = load_config(_write(tmp_path, {"auth": {"username": "alice", "password": None}}))
        assert config.auth.password == ""
        assert config.auth.enabled is False

    def test_dav_section(self, tmp_path):
        config = load_config(_write(tmp_path, {"dav": {"max_upload_bytes": 2048}}))
        assert config.dav.max_upload_bytes == 2048

    def test_nested_storage_sections(self, tmp_path):
        config = load_config(
            _write(
                tmp_path,
                {
                    "storage": {
                        "backend": "s3",
                        "memory": {"max_size_bytes": 512},
                        "sqlite": {"path": "/var/lib/flatdav.db"},
                        "s3": {
                            "bucket": "files",
                            "region": "auto",
                            "prefix": "dav/",
                            "endpoint_url": "https://example.r2.cloudflarestorage.com",
                            "use_path_style": True,
                        },
                    }
                },
            )
        )
        storage = config.storage
        assert storage.backend == "s3"
        assert storage.memory_max_size_bytes == 512
        assert storage.sqlite_path == "/var/lib/flatdav.db"
        assert storage.s3_bucket == "files"
        assert storage.s3_region == "auto"
        assert storage.s3_prefix == "dav/"
        assert storage.s3_endpoint_url.startswith("https://")
        assert storage.s3_use_path_style is True

    def test_observability_section(self, tmp_path):
        config = load_config(
            _write(tmp_path, {"observability": {"metrics": False, "health_check": False}})
        )
        assert config.observability.metrics is False
        assert config.observability.health_check is False

    def test_example_config_loads(self):
        example = Path(__file__).resolve().parent.parent / "flatdav.example.yaml"
        config = load_config(example)
        assert config.storage.backend == "memory"
        assert config.dav.max_upload_bytes == DEFAULT_MAX_UPLOAD_BYTES
