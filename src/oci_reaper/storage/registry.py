"""Minimalist client for the Docker Registry v2 / OCI distribution API.

We must be able to list repositories and tags, fetch manifests and config
blobs, learn the digest a tag points to, and delete manifests.

https://distribution.github.io/distribution/spec/api/
"""

import base64
from types import TracebackType
from typing import Any, Self

import httpx
import structlog

from ..config import Config, RegistryAuth
from ..exceptions import (
    HTTPStatusError,
    NetworkError,
    NotFoundError,
    TransportError,
    UnauthorizedError,
)
from ..models.manifest import MANIFEST_MEDIA_TYPES, Manifest

DIGEST_HEADER = "Docker-Content-Digest"


class RegistryClient:
    """Authenticated client for one registry.

    Note that these methods are synchronous.  The shared ``httpx.Client`` is
    thread-safe, so worker threads may call them concurrently.
    """

    def __init__(
        self, cfg: Config, http_client: httpx.Client | None = None
    ) -> None:
        self._url = cfg.base_url
        self._logger = structlog.get_logger(__name__)
        # Some registries serve blobs from object storage via redirects
        self._http_client = http_client or httpx.Client(
            timeout=cfg.timeout, follow_redirects=True
        )
        self._http_client.headers["accept"] = ", ".join(MANIFEST_MEDIA_TYPES)
        self.authenticate(cfg.auth)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._http_client.close()

    def authenticate(self, auth: RegistryAuth) -> None:
        """Use HTTP Basic authentication on every request."""
        creds = f"{auth.username}:{auth.password.get_secret_value()}"
        token = base64.b64encode(creds.encode()).decode()
        self._http_client.headers["authorization"] = f"Basic {token}"

    def authenticated_call(self, method: str, url: str) -> httpx.Response:
        """Make a request, raising a `TransportError` unless it succeeds."""
        try:
            r = self._http_client.request(method, url)
        except httpx.RequestError as exc:
            self._logger.error(f"API call failed: {method} {url} ({exc})")
            message = str(exc) or type(exc).__name__
            raise NetworkError(method, url, message) from exc
        self._logger.debug(f"API Call: {method} {url} -> HTTP {r.status_code}")
        if r.is_success:
            return r
        self._logger.debug("Response", body=r.text[:500])
        match r.status_code:
            case 401 | 403:
                raise UnauthorizedError(method, url, f"HTTP {r.status_code}")
            case 404:
                raise NotFoundError(method, url, "HTTP 404")
            case _:
                raise HTTPStatusError(method, url, r.status_code)

    def list_repositories(self) -> list[str]:
        """Return repository names from a single catalog request."""
        url = f"{self._url}/v2/_catalog"
        self._logger.info(f"Fetching repository catalog from {self._url}")
        obj = self._get_json(url)
        return _string_list(obj.get("repositories"))

    def list_tags(self, repo: str) -> list[str]:
        url = f"{self._url}/v2/{repo}/tags/list"
        self._logger.debug(f"Fetching tags for repository: {repo}")
        obj = self._get_json(url)
        return _string_list(obj.get("tags"))

    def get_manifest(self, repo: str, reference: str) -> Manifest:
        """Fetch a manifest by tag or digest."""
        url = f"{self._url}/v2/{repo}/manifests/{reference}"
        return Manifest.from_json(self._get_json(url))

    def get_blob(self, repo: str, digest: str) -> dict[str, Any]:
        """Fetch a JSON blob, such as an image config."""
        url = f"{self._url}/v2/{repo}/blobs/{digest}"
        return self._get_json(url)

    def get_manifest_digest(self, repo: str, tag: str) -> str | None:
        """Return the digest the tag currently points to.

        The tag itself is never used for deletion, since it may have been
        moved to another image.
        """
        url = f"{self._url}/v2/{repo}/manifests/{tag}"
        r = self.authenticated_call("GET", url)
        digest = r.headers.get(DIGEST_HEADER)  # httpx headers ignore case
        if digest is None or digest.strip() == "":
            return None
        return digest.strip()

    def delete_manifest(self, repo: str, digest: str) -> None:
        """Delete a manifest by digest.

        This always contacts the registry; dry run is the caller's concern.
        """
        url = f"{self._url}/v2/{repo}/manifests/{digest}"
        self._logger.info(f"Deleting {repo}@{digest}")
        self.authenticated_call("DELETE", url)
        self._logger.info(f"Successfully deleted {repo}@{digest}")

    def _get_json(self, url: str) -> dict[str, Any]:
        r = self.authenticated_call("GET", url)
        try:
            obj = r.json()
        except ValueError as exc:
            raise TransportError("GET", url, "response is not JSON") from exc
        if not isinstance(obj, dict):
            raise TransportError("GET", url, "response is not a JSON object")
        return obj


def _string_list(inp: Any) -> list[str]:
    # Registries return null rather than [] for empty repositories
    if not isinstance(inp, list):
        return []
    return [x for x in inp if isinstance(x, str) and x]
