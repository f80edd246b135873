"""Test creation date resolution."""

import json

import pytest

from oci_reaper.models.manifest import (
    DOCKER_MANIFEST_LIST,
    ManifestListStrategy,
    Platform,
)
from oci_reaper.services.dates import DateResolver
from oci_reaper.storage.registry import RegistryClient

from support.registry import MockRegistry


@pytest.fixture
def resolver(client: RegistryClient) -> DateResolver:
    return DateResolver(client)


def test_config_blob(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    """The config blob is the first place we look."""
    mock_registry.add_image(
        "repo",
        "1.0",
        "2023-05-05T05:05:05Z",
        annotations={"org.opencontainers.image.created": "1999-01-01"},
    )
    assert resolver.resolve_creation_date("repo", "1.0") == (
        "2023-05-05T05:05:05Z"
    )


def test_config_blob_capitalized(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    mock_registry.add_image(
        "repo", "1.0", "2023-05-05T05:05:05Z", key="Created"
    )
    assert resolver.resolve_creation_date("repo", "1.0") == (
        "2023-05-05T05:05:05Z"
    )


def test_annotation_fallback(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    """With no date in the config blob, the OCI annotation is used."""
    mock_registry.add_image(
        "repo",
        "1.0",
        None,
        annotations={
            "org.opencontainers.image.created": "2023-01-01T00:00:00Z"
        },
    )
    assert resolver.resolve_creation_date("repo", "1.0") == (
        "2023-01-01T00:00:00Z"
    )


def test_blob_failure_falls_through(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    """A config blob we cannot fetch does not stop the search."""
    mock_registry.add_image(
        "repo",
        "1.0",
        "2023-05-05T05:05:05Z",
        annotations={"created": "2022-02-02T00:00:00Z"},
    )
    for _, digest in mock_registry.blobs:
        mock_registry.blob_status[digest] = 500
    assert resolver.resolve_creation_date("repo", "1.0") == (
        "2022-02-02T00:00:00Z"
    )


def test_v1_compatibility_history(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    v1 = json.dumps({"created": "2019-09-09T09:09:09.123456789Z"})
    mock_registry.add_manifest(
        "legacy",
        {"schemaVersion": 1, "history": [{"v1Compatibility": v1}]},
        tag="old",
    )
    assert resolver.resolve_creation_date("legacy", "old") == (
        "2019-09-09T09:09:09.123456789Z"
    )


def test_string_history(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    entry = json.dumps({"created": "2018-08-08T08:08:08Z"})
    mock_registry.add_manifest(
        "legacy", {"schemaVersion": 1, "history": [entry]}, tag="older"
    )
    assert resolver.resolve_creation_date("legacy", "older") == (
        "2018-08-08T08:08:08Z"
    )


def test_history_before_annotations(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    v1 = json.dumps({"created": "2019-09-09T09:09:09Z"})
    mock_registry.add_manifest(
        "repo",
        {
            "history": [{"v1Compatibility": v1}],
            "annotations": {"created": "2020-01-01T00:00:00Z"},
        },
        tag="1.0",
    )
    assert resolver.resolve_creation_date("repo", "1.0") == (
        "2019-09-09T09:09:09Z"
    )


def test_no_date(resolver: DateResolver, mock_registry: MockRegistry) -> None:
    """When every method fails, there is no date."""
    mock_registry.add_image("repo", "1.0", None)
    assert resolver.resolve_creation_date("repo", "1.0") is None


def test_missing_manifest(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    mock_registry.add_repository("repo")
    assert resolver.resolve_creation_date("repo", "gone") is None


def test_manifest_list_first(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    """By default a manifest list is dated by its first image."""
    mock_registry.add_index(
        "multi",
        "1.0",
        [
            ("linux", "amd64", "2023-01-01T00:00:00Z"),
            ("linux", "arm64", "2023-06-01T00:00:00Z"),
        ],
    )
    assert resolver.resolve_creation_date("multi", "1.0") == (
        "2023-01-01T00:00:00Z"
    )


def test_manifest_list_newest(
    client: RegistryClient, mock_registry: MockRegistry
) -> None:
    """The newest strategy dates a manifest list by its newest image."""
    mock_registry.add_index(
        "multi",
        "1.0",
        [
            ("linux", "amd64", "2023-01-01T00:00:00Z"),
            ("linux", "arm64", "2023-06-01T00:00:00+00:00"),
            ("linux", "s390x", "garbage"),
            ("linux", "ppc64le", None),
        ],
        media_type=DOCKER_MANIFEST_LIST,
    )
    resolver = DateResolver(client, strategy=ManifestListStrategy.NEWEST)
    assert resolver.resolve_creation_date("multi", "1.0") == (
        "2023-06-01T00:00:00+00:00"
    )


def test_manifest_list_platform(
    client: RegistryClient, mock_registry: MockRegistry
) -> None:
    mock_registry.add_index(
        "multi",
        "1.0",
        [
            ("linux", "amd64", "2023-01-01T00:00:00Z"),
            ("linux", "arm64", "2023-06-01T00:00:00Z"),
        ],
    )
    resolver = DateResolver(
        client,
        strategy=ManifestListStrategy.PLATFORM,
        platform=Platform.from_str("linux/arm64"),
    )
    assert resolver.resolve_creation_date("multi", "1.0") == (
        "2023-06-01T00:00:00Z"
    )
    resolver = DateResolver(
        client,
        strategy=ManifestListStrategy.PLATFORM,
        platform=Platform.from_str("windows/amd64"),
    )
    assert resolver.resolve_creation_date("multi", "1.0") is None


def test_platform_strategy_needs_platform(client: RegistryClient) -> None:
    with pytest.raises(ValueError, match="platform"):
        DateResolver(client, strategy=ManifestListStrategy.PLATFORM)


def test_sub_manifest_failure(
    resolver: DateResolver, mock_registry: MockRegistry
) -> None:
    """If the first image is missing, the index itself is examined."""
    mock_registry.add_manifest(
        "multi",
        {
            "mediaType": DOCKER_MANIFEST_LIST,
            "manifests": [{"digest": "sha256:missing"}],
            "annotations": {
                "org.opencontainers.image.created": "2021-03-03T00:00:00Z"
            },
        },
        tag="1.0",
    )
    assert resolver.resolve_creation_date("multi", "1.0") == (
        "2021-03-03T00:00:00Z"
    )
