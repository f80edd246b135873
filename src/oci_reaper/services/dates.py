"""Determine when an artifact was created.

Registries disagree about where, or whether, the creation time of an image
is recorded, so we try several places in order and take the first answer.
"""

import json

import structlog

from ..exceptions import TimestampError, TransportError
from ..models.manifest import (
    Manifest,
    ManifestListStrategy,
    Platform,
    created_from_config,
)
from ..storage.registry import RegistryClient
from .cutoff import parse_timestamp


class DateResolver:
    """Find the creation date of a tagged artifact.

    Parameters
    ----------
    client
        Client for the registry holding the artifact.
    strategy
        Which image(s) of a manifest list determine its date.
    platform
        Platform to select when ``strategy`` is
        ``ManifestListStrategy.PLATFORM``.
    """

    def __init__(
        self,
        client: RegistryClient,
        strategy: ManifestListStrategy = ManifestListStrategy.FIRST,
        platform: Platform | None = None,
    ) -> None:
        if strategy == ManifestListStrategy.PLATFORM and platform is None:
            raise ValueError("Platform strategy requires a platform")
        self._client = client
        self._strategy = strategy
        self._platform = platform
        self._logger = structlog.get_logger(__name__)

    def resolve_creation_date(self, repo: str, tag: str) -> str | None:
        """Return the creation timestamp as recorded, or `None`.

        The timestamp is returned exactly as the registry recorded it;
        parsing it is left to the caller.
        """
        log = self._logger.bind(repository=repo, tag=tag)
        log.debug(f"Getting creation date for {repo}:{tag}")
        try:
            manifest = self._client.get_manifest(repo, tag)
        except TransportError as exc:
            log.warning(f"Failed to fetch manifest for {repo}:{tag}: {exc}")
            return None
        log.debug(f"Manifest media type: {manifest.media_type or 'unknown'}")

        if manifest.is_list:
            created = self._resolve_list(repo, manifest)
        else:
            created = self._resolve_manifest(repo, manifest)

        if created is None:
            log.warning(
                f"Could not determine creation date for {repo}:{tag} after "
                "trying all methods"
            )
            log.debug(f"Manifest structure: {json.dumps(manifest.raw)[:200]}")
        return created

    def _resolve_list(self, repo: str, index: Manifest) -> str | None:
        refs = index.manifests
        match self._strategy:
            case ManifestListStrategy.FIRST:
                refs = refs[:1]
            case ManifestListStrategy.PLATFORM:
                refs = [
                    x
                    for x in refs
                    if x.platform is not None
                    and self._platform is not None
                    and self._platform.matches(x.platform)
                ][:1]
                if not refs:
                    self._logger.warning(
                        f"No image for platform {self._platform} in "
                        f"manifest list for {repo}"
                    )
                    return None
            case ManifestListStrategy.NEWEST:
                pass
        if not refs:
            # An index with no entries may still carry annotations
            return self._resolve_manifest(repo, index)

        dates: list[str] = []
        for ref in refs:
            self._logger.debug(f"Fetching sub-manifest: {ref.digest}")
            try:
                sub = self._client.get_manifest(repo, ref.digest)
            except TransportError as exc:
                self._logger.debug(
                    f"Failed to fetch sub-manifest {ref.digest}: {exc}"
                )
                sub = index
            created = self._resolve_manifest(repo, sub)
            if created is not None:
                dates.append(created)
        if not dates:
            return None
        if len(dates) == 1:
            return dates[0]
        return _newest(dates)

    def _resolve_manifest(self, repo: str, manifest: Manifest) -> str | None:
        """Try the config blob, then history, then annotations."""
        if manifest.config_digest:
            self._logger.debug(
                f"Found config digest: {manifest.config_digest}"
            )
            try:
                config = self._client.get_blob(repo, manifest.config_digest)
            except TransportError as exc:
                self._logger.debug(f"Failed to fetch config blob: {exc}")
            else:
                created = created_from_config(config)
                if created is not None:
                    self._logger.debug(
                        f"Got creation date from config blob: {created}"
                    )
                    return created
        else:
            self._logger.debug("No config digest found in manifest")

        created = manifest.created_from_history()
        if created is not None:
            self._logger.debug(f"Got creation date from history: {created}")
            return created

        created = manifest.created_from_annotations()
        if created is not None:
            self._logger.debug(
                f"Got creation date from annotations: {created}"
            )
        return created


def _newest(dates: list[str]) -> str:
    """Pick the latest of several timestamps, ignoring unparseable ones.

    If none of them parse, the first is returned so that the caller reports
    the parse failure.
    """
    best: str | None = None
    for inp in dates:
        try:
            dt = parse_timestamp(inp)
        except TimestampError:
            continue
        if best is None or parse_timestamp(best) < dt:
            best = inp
    return best if best is not None else dates[0]
