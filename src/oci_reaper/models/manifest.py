"""Model for the parts of an image manifest we care about."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Self, TypeAlias

OCI_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = (
    "application/vnd.docker.distribution.manifest.list.v2+json"
)
MANIFEST_MEDIA_TYPES = (
    OCI_INDEX,
    OCI_MANIFEST,
    DOCKER_MANIFEST,
    DOCKER_MANIFEST_LIST,
)

ANNOTATION_CREATED = "org.opencontainers.image.created"

JSONObject: TypeAlias = dict[str, Any]


class ManifestListStrategy(Enum):
    """Which entries of a manifest list (or image index) determine the
    creation date of the whole artifact.
    """

    FIRST = "first"
    NEWEST = "newest"
    PLATFORM = "platform"


@dataclass(frozen=True)
class Platform:
    """Platform of one image within a manifest list."""

    os: str
    architecture: str
    variant: str | None = None

    @classmethod
    def from_str(cls, inp: str) -> Self:
        """Parse ``os/architecture[/variant]``, as in ``linux/arm64/v8``."""
        parts = inp.strip().split("/")
        if len(parts) not in (2, 3) or not all(parts):
            raise ValueError(
                f"Platform '{inp}' is not of the form "
                "os/architecture[/variant]"
            )
        variant = parts[2] if len(parts) == 3 else None
        return cls(os=parts[0], architecture=parts[1], variant=variant)

    def matches(self, other: Self) -> bool:
        """Variant only has to match if we asked for one."""
        if self.os != other.os or self.architecture != other.architecture:
            return False
        return self.variant is None or self.variant == other.variant

    def __str__(self) -> str:
        base = f"{self.os}/{self.architecture}"
        return f"{base}/{self.variant}" if self.variant else base


@dataclass
class ManifestReference:
    """One entry of the ``manifests`` array of a manifest list."""

    digest: str
    media_type: str | None = None
    platform: Platform | None = None


@dataclass
class Manifest:
    """Class representing an image manifest, or a manifest list.

    Only the fields used to find the creation date are kept.  The raw
    document is retained for debugging output.
    """

    media_type: str | None = None
    config_digest: str | None = None
    manifests: list[ManifestReference] = field(default_factory=list)
    history: list[Any] = field(default_factory=list)
    annotations: dict[str, str] = field(default_factory=dict)
    raw: JSONObject = field(default_factory=dict, repr=False)

    @property
    def is_list(self) -> bool:
        """Whether this is a manifest list or image index."""
        if self.media_type is None:
            return False
        return (
            "manifest.list" in self.media_type
            or "image.index" in self.media_type
        )

    def created_from_history(self) -> str | None:
        """Look for a creation date in the legacy ``history`` array.

        Schema 2 manifests converted from schema 1 keep a
        ``v1Compatibility`` string in each history entry; the oldest
        registries store the entry itself as a JSON string.
        """
        if not self.history:
            return None
        entry = self.history[0]
        if isinstance(entry, dict):
            return _created_from_json_string(entry.get("v1Compatibility"))
        return _created_from_json_string(entry)

    def created_from_annotations(self) -> str | None:
        return (
            _nonempty(self.annotations.get(ANNOTATION_CREATED))
            or _nonempty(self.annotations.get("created"))
        )

    @classmethod
    def from_json(cls, inp: JSONObject | str) -> Self:
        """Build a Manifest, tolerating missing or oddly-typed fields."""
        if isinstance(inp, str):
            inp = json.loads(inp)
        if not isinstance(inp, dict):
            raise TypeError(f"Manifest must be a JSON object, not {inp!r}")

        media_type = inp.get("mediaType")
        if not isinstance(media_type, str):
            media_type = None

        config_digest: str | None = None
        config = inp.get("config")
        if isinstance(config, dict) and isinstance(config.get("digest"), str):
            config_digest = config["digest"]

        refs: list[ManifestReference] = []
        for entry in inp.get("manifests") or []:
            if not isinstance(entry, dict):
                continue
            digest = entry.get("digest")
            if not isinstance(digest, str) or not digest:
                continue
            platform: Platform | None = None
            plat = entry.get("platform")
            if isinstance(plat, dict) and plat.get("os"):
                platform = Platform(
                    os=str(plat.get("os")),
                    architecture=str(plat.get("architecture", "")),
                    variant=plat.get("variant"),
                )
            refs.append(
                ManifestReference(
                    digest=digest,
                    media_type=entry.get("mediaType"),
                    platform=platform,
                )
            )

        history = inp.get("history")
        if not isinstance(history, list):
            history = []

        annotations = inp.get("annotations")
        if not isinstance(annotations, dict):
            annotations = {}

        return cls(
            media_type=media_type,
            config_digest=config_digest,
            manifests=refs,
            history=history,
            annotations=annotations,
            raw=inp,
        )


def created_from_config(config: JSONObject) -> str | None:
    """Read the creation date from an image config blob."""
    return _nonempty(config.get("created")) or _nonempty(config.get("Created"))


def _created_from_json_string(inp: Any) -> str | None:
    if not isinstance(inp, str) or not inp:
        return None
    try:
        obj = json.loads(inp)
    except json.JSONDecodeError:
        return None
    if not isinstance(obj, dict):
        return None
    return _nonempty(obj.get("created"))


def _nonempty(inp: Any) -> str | None:
    # null, false and "" all mean "not recorded"
    if inp is None or inp is False or inp == "":
        return None
    return str(inp)
