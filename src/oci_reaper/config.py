"""Configuration for the OCI registry reaper."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Self

import yaml
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    HttpUrl,
    PrivateAttr,
    SecretStr,
    ValidationError,
    model_validator,
)
from safir.pydantic import CamelCaseModel

from .exceptions import ConfigError
from .models.filter import NameFilter
from .models.manifest import ManifestListStrategy, Platform

ENVIRONMENT_VARIABLES = {
    "REGISTRY_URL": "registry",
    "REGISTRY_USERNAME": "username",
    "REGISTRY_PASSWORD": "password",
    "ARTIFACT_FILTER": "artifact_filter",
    "TAG_FILTER": "tag_filter",
    "RETENTION_DAYS": "retention_days",
    "DRY_RUN": "dry_run",
    "BATCH_SIZE": "batch_size",
    "LOG_LEVEL": "log_level",
    "MANIFEST_LIST_STRATEGY": "manifest_list_strategy",
    "PLATFORM": "platform",
    "REGISTRY_TIMEOUT": "timeout",
}


def _add_scheme(inp: Any) -> Any:
    # Registries are usually given as bare hostnames
    if isinstance(inp, str):
        inp = inp.strip()
        if inp and "://" not in inp:
            return f"https://{inp}"
    return inp


def _to_platform(inp: Any) -> Any:
    if isinstance(inp, str):
        if inp.strip() == "":
            return None
        return Platform.from_str(inp)
    return inp


def _to_log_level(inp: Any) -> Any:
    if isinstance(inp, str):
        inp = inp.strip().upper()
        if inp == "WARN":
            return "WARNING"
    return inp


class LogLevel(Enum):
    """Verbosity of reaper logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def logging_level(self) -> int:
        return logging.getLevelNamesMapping()[self.value]


class RegistryAuth(BaseModel):
    """Basic-auth credentials for a container registry."""

    model_config = ConfigDict(frozen=True)

    username: Annotated[
        str,
        Field(
            title="Username",
            description="Username for registry authentication.",
            examples=["fbooth"],
            min_length=1,
        ),
    ]

    password: Annotated[
        SecretStr,
        Field(
            title="Password",
            description="Password or token for registry authentication.",
            examples=["hunter2"],
            min_length=1,
        ),
    ]


class Config(CamelCaseModel):
    """Configuration for one run of the reaper against one registry.

    Built once at startup and handed to every component; it cannot be
    modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    registry: Annotated[
        HttpUrl,
        BeforeValidator(_add_scheme),
        Field(
            title="Registry",
            description=(
                "URL of registry host.  If no scheme is given, https is "
                "assumed."
            ),
            examples=["registry.example.com", "https://ghcr.io/myorg"],
        ),
    ]

    auth: Annotated[
        RegistryAuth,
        Field(
            title="Registry Auth",
            description="Authentication details for specified registry.",
        ),
    ]

    artifact_filter: Annotated[
        str,
        Field(
            title="Artifact filter",
            description=(
                "Comma-separated list of repository name prefixes, or a "
                "regular expression.  Empty means all repositories."
            ),
            examples=["backend-api,worker-service", ".*backend.*"],
        ),
    ] = ""

    tag_filter: Annotated[
        str,
        Field(
            title="Tag filter",
            description=(
                "Regular expression tags must match to be considered.  Empty "
                "means all tags."
            ),
            examples=["^master-.*", ".*-snapshot$"],
        ),
    ] = ""

    retention_days: Annotated[
        int,
        Field(
            title="Retention days",
            description="Delete artifacts older than this many days.",
            examples=[30],
            ge=0,
        ),
    ] = 30

    dry_run: Annotated[
        bool,
        Field(
            title="Dry run",
            description="Do not actually delete any artifacts from registry.",
        ),
    ] = True

    batch_size: Annotated[
        int,
        Field(
            title="Batch size",
            description="Number of artifacts to process in parallel.",
            examples=[10],
            ge=1,
        ),
    ] = 10

    log_level: Annotated[
        LogLevel,
        BeforeValidator(_to_log_level),
        Field(
            title="Log level",
            description="Logging verbosity: DEBUG, INFO, WARN, or ERROR.",
        ),
    ] = LogLevel.INFO

    manifest_list_strategy: Annotated[
        ManifestListStrategy,
        Field(
            title="Manifest list strategy",
            description=(
                "How to date a multi-platform artifact: from its first "
                "image, from its newest image, or from the image for "
                "'platform'."
            ),
        ),
    ] = ManifestListStrategy.FIRST

    platform: Annotated[
        Platform | None,
        BeforeValidator(_to_platform),
        Field(
            title="Platform",
            description=(
                "Platform (os/architecture[/variant]) used to date "
                "multi-platform artifacts with the 'platform' strategy."
            ),
            examples=["linux/amd64"],
        ),
    ] = None

    timeout: Annotated[
        float,
        Field(
            title="Timeout",
            description="Timeout in seconds for each registry request.",
            gt=0,
        ),
    ] = 30.0

    _repository_filter: NameFilter = PrivateAttr(default_factory=NameFilter)
    _tag_filter: NameFilter = PrivateAttr(default_factory=NameFilter)

    @model_validator(mode="after")
    def _build_filters(self) -> Self:
        self._repository_filter = NameFilter.for_repositories(
            self.artifact_filter
        )
        self._tag_filter = NameFilter.for_tags(self.tag_filter)
        if (
            self.manifest_list_strategy == ManifestListStrategy.PLATFORM
            and self.platform is None
        ):
            raise ValueError(
                "manifest_list_strategy 'platform' requires 'platform'"
            )
        return self

    @property
    def repository_filter(self) -> NameFilter:
        return self._repository_filter

    @property
    def tags_filter(self) -> NameFilter:
        return self._tag_filter

    @property
    def base_url(self) -> str:
        """Registry URL without a trailing slash."""
        return str(self.registry).rstrip("/")

    @classmethod
    def from_mapping(
        cls,
        inp: Mapping[str, Any],
        overrides: Mapping[str, Any] | None = None,
    ) -> Self:
        """Validate configuration, applying any overrides first.

        Flat ``username`` and ``password`` keys are folded into ``auth``.
        Overrides whose value is `None` are ignored.
        """
        # Overrides use field names, so loaded camelCase keys must too
        aliases = {
            f.alias: name for name, f in cls.model_fields.items() if f.alias
        }
        data = {aliases.get(k, k): v for k, v in inp.items()}
        for key, value in (overrides or {}).items():
            if value is not None:
                data[key] = value
        auth = dict(data.pop("auth", None) or {})
        for key in ("username", "password"):
            if key in data:
                auth[key] = data.pop(key)
        data["auth"] = auth
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_file(
        cls, path: Path, overrides: Mapping[str, Any] | None = None
    ) -> Self:
        try:
            inp = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(
                f"Cannot read config file {path}: {exc}"
            ) from exc
        if not isinstance(inp, dict):
            raise ConfigError(f"Config file {path} is not a YAML mapping")
        return cls.from_mapping(inp, overrides)

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> Self:
        """Build configuration from REGISTRY_URL and friends.

        Unset and empty variables fall back to defaults.
        """
        env = os.environ if environ is None else environ
        inp: dict[str, Any] = {}
        for var, key in ENVIRONMENT_VARIABLES.items():
            value = env.get(var, "")
            if value != "":
                inp[key] = value
        return cls.from_mapping(inp, overrides)
