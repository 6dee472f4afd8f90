"""Configuration loading and Pydantic models for flatdav."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

# 100 MiB: the largest body a single PUT may carry.
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024


class ServerConfig(BaseModel):
    """Server binding and runtime configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    log_format: str = "text"
    shutdown_timeout: int = 30


class AuthConfig(BaseModel):
    """Basic-auth credentials. Leaving either field empty disables the gate."""

    username: str = ""
    password: str = ""
    realm: str = "flatdav"

    @property
    def enabled(self) -> bool:
        return bool(self.username and self.password)


class DavConfig(BaseModel):
    """WebDAV protocol limits."""

    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES


class StorageConfig(BaseModel):
    """Object store backend configuration."""

    backend: str = "memory"
    memory_max_size_bytes: int = 0
    sqlite_path: str = "./data/flatdav.db"
    s3_bucket: str = ""
    s3_region: str = "us-east-1"
    s3_prefix: str = ""
    s3_endpoint_url: str = ""
    s3_use_path_style: bool = False
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""


class ObservabilityConfig(BaseModel):
    """Metrics and health probe toggles."""

    metrics: bool = True
    health_check: bool = True


class FlatDavConfig(BaseModel):
    """Top-level flatdav configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    dav: DavConfig = Field(default_factory=DavConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    return {
        "host": data.get("host", "0.0.0.0"),
        "port": data.get("port", 8080),
        "log_level": data.get("log_level", "INFO"),
        "log_format": data.get("log_format", "text"),
        "shutdown_timeout": data.get("shutdown_timeout", 30),
    }


def _parse_auth(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the auth section from YAML data."""
    if data is None:
        return {}
    return {
        "username": data.get("username", "") or "",
        "password": data.get("password", "") or "",
        "realm": data.get("realm", "flatdav"),
    }


def _parse_dav(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the dav section from YAML data."""
    if data is None:
        return {}
    return {"max_upload_bytes": data.get("max_upload_bytes", DEFAULT_MAX_UPLOAD_BYTES)}


def _parse_storage(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the storage section from YAML data.

    Handles nested structure: storage.sqlite.path -> sqlite_path,
    storage.s3.bucket -> s3_bucket, etc.
    """
    if data is None:
        return {}

    result: dict[str, Any] = {"backend": data.get("backend", "memory")}

    memory_section = data.get("memory")
    if isinstance(memory_section, dict):
        result["memory_max_size_bytes"] = memory_section.get("max_size_bytes", 0)

    sqlite_section = data.get("sqlite")
    if isinstance(sqlite_section, dict):
        result["sqlite_path"] = sqlite_section.get("path", "./data/flatdav.db")

    s3_section = data.get("s3")
    if isinstance(s3_section, dict):
        result["s3_bucket"] = s3_section.get("bucket", "")
        result["s3_region"] = s3_section.get("region", "us-east-1")
        result["s3_prefix"] = s3_section.get("prefix", "")
        result["s3_endpoint_url"] = s3_section.get("endpoint_url", "")
        result["s3_use_path_style"] = s3_section.get("use_path_style", False)
        result["s3_access_key_id"] = s3_section.get("access_key_id", "")
        result["s3_secret_access_key"] = s3_section.get("secret_access_key", "")

    return result


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {
        "metrics": data.get("metrics", True),
        "health_check": data.get("health_check", True),
    }


def load_config(path: Path) -> FlatDavConfig:
    """Load a FlatDavConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated FlatDavConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return FlatDavConfig(
        server=ServerConfig(**_parse_server(raw.get("server"))),
        auth=AuthConfig(**_parse_auth(raw.get("auth"))),
        dav=DavConfig(**_parse_dav(raw.get("dav"))),
        storage=StorageConfig(**_parse_storage(raw.get("storage"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
