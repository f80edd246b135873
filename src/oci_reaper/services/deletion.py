"""Guarded manifest deletion."""

from enum import Enum

import structlog

from ..exceptions import TransportError
from ..storage.registry import RegistryClient


class DeletionResult(Enum):
    """Outcome of a single deletion."""

    DELETED = "deleted"
    FAILED = "failed"


class DeletionExecutor:
    """Delete (or, under dry run, pretend to delete) manifests by digest."""

    def __init__(self, client: RegistryClient) -> None:
        self._client = client
        self._logger = structlog.get_logger(__name__)

    def delete(
        self, repo: str, digest: str, *, dry_run: bool
    ) -> DeletionResult:
        if dry_run:
            self._logger.info(f"[DRY RUN] Would delete: {repo}@{digest}")
            return DeletionResult.DELETED
        try:
            self._client.delete_manifest(repo, digest)
        except TransportError as exc:
            self._logger.error(
                f"Failed to delete {repo}@{digest}",
                repository=repo,
                digest=digest,
                error=str(exc),
            )
            return DeletionResult.FAILED
        return DeletionResult.DELETED
