"""
Store configuration.

A single immutable value describing where collections live and how to
authenticate. It is built once (directly, from the environment, or from a
YAML file) and passed explicitly into :class:`~gh_collections.store.CollectionStore`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml

from .exceptions import ConfigParseError, ValidationError

DEFAULT_HOST = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0  # seconds

# Environment variable names
ENV_TOKEN = "GH_COLLECTIONS_TOKEN"
ENV_OWNER = "GH_COLLECTIONS_OWNER"
ENV_REPO = "GH_COLLECTIONS_REPO"
ENV_HOST = "GH_COLLECTIONS_HOST"
ENV_PREFIX = "GH_COLLECTIONS_PREFIX"
ENV_TIMEOUT = "GH_COLLECTIONS_TIMEOUT"


@dataclass(frozen=True)
class StoreConfig:
    """Configuration for a collection store backed by a GitHub repository.

    Attributes:
        auth_token: Token sent as ``Authorization: Bearer <token>``
        owner: Repository owner (user or organization)
        repo: Repository name
        host: API base URL (default: https://api.github.com)
        path_prefix: Prepended verbatim to every blob path (e.g. "db/")
        timeout: Total per-request timeout in seconds
        committer_name: Optional committer name for writes
        committer_email: Optional committer email for writes
    """

    auth_token: str
    owner: str
    repo: str
    host: str = DEFAULT_HOST
    path_prefix: str = ""
    timeout: float = DEFAULT_TIMEOUT
    committer_name: str | None = None
    committer_email: str | None = None

    def __post_init__(self) -> None:
        for name in ("auth_token", "owner", "repo"):
            if not getattr(self, name):
                raise ValidationError(name, "must not be empty")

        parts = urlsplit(self.host)
        if parts.scheme not in ("http", "https"):
            raise ConfigParseError(self.host, "host must be an http(s) URL")
        if not parts.netloc:
            raise ConfigParseError(self.host, "host has no network location")

        if self.timeout <= 0:
            raise ValidationError("timeout", "must be positive", str(self.timeout))

    def __repr__(self) -> str:
        return (
            f"StoreConfig(owner={self.owner!r}, repo={self.repo!r}, host={self.host!r}, "
            f"path_prefix={self.path_prefix!r}, auth_token='***')"
        )

    @property
    def base_url(self) -> str:
        """Host without a trailing slash."""
        return self.host.rstrip("/")

    @property
    def user_agent(self) -> str:
        """Identifying client tag sent with every request."""
        return f"{self.owner}-{self.repo}"

    @property
    def committer(self) -> dict[str, str] | None:
        """Committer object for write requests, when both fields are configured."""
        if self.committer_name and self.committer_email:
            return {"name": self.committer_name, "email": self.committer_email}
        return None

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Create config from environment variables.

        Expected environment variables:
        - GH_COLLECTIONS_TOKEN: API token (required)
        - GH_COLLECTIONS_OWNER: Repository owner (required)
        - GH_COLLECTIONS_REPO: Repository name (required)
        - GH_COLLECTIONS_HOST: API base URL (optional)
        - GH_COLLECTIONS_PREFIX: Path prefix inside the repository (optional)
        - GH_COLLECTIONS_TIMEOUT: Request timeout in seconds (optional)

        Raises:
            ValidationError: If a required variable is missing
            ConfigParseError: If the host or timeout cannot be parsed
        """
        return cls._from_mapping(
            {
                "auth_token": os.environ.get(ENV_TOKEN),
                "owner": os.environ.get(ENV_OWNER),
                "repo": os.environ.get(ENV_REPO),
                "host": os.environ.get(ENV_HOST),
                "path_prefix": os.environ.get(ENV_PREFIX),
                "timeout": os.environ.get(ENV_TIMEOUT),
            }
        )

    @classmethod
    def from_file(cls, config_path: Path) -> StoreConfig:
        """Create config from a YAML file.

        The file holds a ``gh_collections`` section:

        ```yaml
        gh_collections:
          auth_token: "ghp_..."
          owner: "octocat"
          repo: "notes-db"
          path_prefix: "collections/"
        ```

        Raises:
            ConfigParseError: If the file is missing or is not valid YAML
        """
        try:
            loaded = yaml.safe_load(Path(config_path).read_text(encoding="utf-8")) or {}
        except OSError as e:
            raise ConfigParseError(str(config_path), f"cannot read file: {e}") from e
        except UnicodeDecodeError as e:
            raise ConfigParseError(str(config_path), "file is not UTF-8 text") from e
        except yaml.YAMLError as e:
            raise ConfigParseError(str(config_path), f"invalid YAML: {e}") from e

        section = loaded.get("gh_collections") if isinstance(loaded, dict) else None
        if not isinstance(section, dict):
            raise ConfigParseError(str(config_path), "missing 'gh_collections' section")
        return cls._from_mapping(section)

    @classmethod
    def _from_mapping(cls, values: dict[str, Any]) -> StoreConfig:
        kwargs: dict[str, Any] = {
            "auth_token": values.get("auth_token") or "",
            "owner": values.get("owner") or "",
            "repo": values.get("repo") or "",
        }
        if values.get("host"):
            kwargs["host"] = values["host"]
        if values.get("path_prefix"):
            kwargs["path_prefix"] = values["path_prefix"]
        if values.get("committer_name"):
            kwargs["committer_name"] = values["committer_name"]
        if values.get("committer_email"):
            kwargs["committer_email"] = values["committer_email"]

        timeout = values.get("timeout")
        if timeout not in (None, ""):
            try:
                kwargs["timeout"] = float(timeout)
            except (TypeError, ValueError) as e:
                raise ConfigParseError(str(timeout), "timeout must be a number") from e

        return cls(**kwargs)
