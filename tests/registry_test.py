"""Test the registry API client."""

import base64

import httpx
import pytest
import respx

from oci_reaper.config import Config
from oci_reaper.exceptions import (
    HTTPStatusError,
    NetworkError,
    NotFoundError,
    TransportError,
    UnauthorizedError,
)
from oci_reaper.models.manifest import MANIFEST_MEDIA_TYPES
from oci_reaper.storage.registry import RegistryClient

from support.registry import BASE_URL, MockRegistry


def test_headers(client: RegistryClient, mock_registry: MockRegistry) -> None:
    """Every request carries Basic auth and the manifest media types."""
    mock_registry.add_repository("backend-api")
    client.list_repositories()
    request = mock_registry.catalog_route.calls.last.request
    expected = base64.b64encode(b"reaper:hunter2").decode()
    assert request.headers["authorization"] == f"Basic {expected}"
    accept = request.headers["accept"]
    for media_type in MANIFEST_MEDIA_TYPES:
        assert media_type in accept


def test_list_repositories(
    client: RegistryClient, mock_registry: MockRegistry
) -> None:
    for repo in ("backend-api", "team/worker"):
        mock_registry.add_repository(repo)
    assert client.list_repositories() == ["backend-api", "team/worker"]


def test_list_tags(
    client: RegistryClient, mock_registry: MockRegistry
) -> None:
    """Nested repository names and null tag lists are handled."""
    mock_registry.add_image("team/worker", "1.0", "2023-01-01T00:00:00Z")
    mock_registry.add_repository("empty")
    assert client.list_tags("team/worker") == ["1.0"]
    assert client.list_tags("empty") == []
    with pytest.raises(NotFoundError):
        client.list_tags("missing")


@pytest.mark.parametrize(
    ("status", "error"),
    [
        (401, UnauthorizedError),
        (403, UnauthorizedError),
        (404, NotFoundError),
        (500, HTTPStatusError),
        (429, HTTPStatusError),
    ],
)
def test_status_errors(
    client: RegistryClient,
    mock_registry: MockRegistry,
    status: int,
    error: type[TransportError],
) -> None:
    """Failed requests raise the matching transport error."""
    mock_registry.catalog_status = status
    with pytest.raises(error):
        client.list_repositories()


def test_status_code_recorded(
    client: RegistryClient, mock_registry: MockRegistry
) -> None:
    mock_registry.catalog_status = 503
    with pytest.raises(HTTPStatusError) as excinfo:
        client.list_repositories()
    assert excinfo.value.status_code == 503
    assert excinfo.value.method == "GET"
    assert excinfo.value.url.endswith("/v2/_catalog")


def test_network_error(config: Config) -> None:
    with respx.mock() as router:
        router.get(f"{BASE_URL}/v2/_catalog").mock(
            side_effect=httpx.ConnectError("Connection refused")
        )
        with RegistryClient(config) as client:
            with pytest.raises(NetworkError):
                client.list_repositories()


def test_not_json(config: Config) -> None:
    with respx.mock() as router:
        router.get(f"{BASE_URL}/v2/_catalog").mock(
            return_value=httpx.Response(200, text="<html>login</html>")
        )
        with RegistryClient(config) as client:
            with pytest.raises(TransportError):
                client.list_repositories()


def test_follows_redirects(config: Config) -> None:
    """Blobs served from object storage are reached via redirect."""
    storage = "https://storage.example.com/blob/abc"
    with respx.mock() as router:
        router.get(f"{BASE_URL}/v2/repo/blobs/sha256:abc").mock(
            return_value=httpx.Response(307, headers={"location": storage})
        )
        router.get(storage).mock(
            return_value=httpx.Response(
                200, json={"created": "2023-01-01T00:00:00Z"}
            )
        )
        with RegistryClient(config) as client:
            blob = client.get_blob("repo", "sha256:abc")
    assert blob["created"] == "2023-01-01T00:00:00Z"


def test_get_manifest(
    client: RegistryClient, mock_registry: MockRegistry
) -> None:
    digest = mock_registry.add_image("repo", "1.0", "2023-01-01T00:00:00Z")
    manifest = client.get_manifest("repo", "1.0")
    assert manifest.config_digest is not None
    assert client.get_manifest("repo", digest) == manifest


def test_get_manifest_digest(
    client: RegistryClient, mock_registry: MockRegistry
) -> None:
    """The digest comes from the Docker-Content-Digest header."""
    digest = mock_registry.add_image("repo", "1.0", "2023-01-01T00:00:00Z")
    assert client.get_manifest_digest("repo", "1.0") == digest
    mock_registry.omit_digest_header = True
    assert client.get_manifest_digest("repo", "1.0") is None
    with pytest.raises(NotFoundError):
        client.get_manifest_digest("repo", "2.0")


def test_delete_manifest(
    client: RegistryClient, mock_registry: MockRegistry
) -> None:
    digest = mock_registry.add_image("repo", "1.0", "2023-01-01T00:00:00Z")
    client.delete_manifest("repo", digest)
    assert mock_registry.deleted == [("repo", digest)]
    mock_registry.delete_status["repo"] = 405
    with pytest.raises(HTTPStatusError):
        client.delete_manifest("repo", digest)

