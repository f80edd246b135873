"""Provides reaping services for an OCI registry."""

import datetime
from concurrent.futures import Future, ThreadPoolExecutor, as_completed

import structlog

from ..config import Config
from ..exceptions import (
    CatalogError,
    DeletionError,
    DigestResolutionError,
    TimestampError,
    TransportError,
)
from ..models.summary import Counter, RunSummary
from ..storage.registry import RegistryClient
from .cutoff import CutoffEvaluator
from .dates import DateResolver
from .deletion import DeletionExecutor, DeletionResult


class Reaper:
    """Provides the mechanism to implement an artifact retention policy.

    A run walks every repository in the catalog that passes the artifact
    filter, and every tag in it that passes the tag filter.  Tags whose
    creation date is older than the retention cutoff are deleted by digest.

    Failures are confined to the repository or tag where they happen; only
    failing to list the catalog stops the run.

    Parameters
    ----------
    cfg
        Reaper configuration.
    client
        Client for the registry named in ``cfg``.
    resolver
        Date resolver.  Built from ``cfg`` if not supplied.
    executor
        Deletion executor.  Built from ``cfg`` if not supplied.
    """

    def __init__(
        self,
        cfg: Config,
        client: RegistryClient,
        *,
        resolver: DateResolver | None = None,
        executor: DeletionExecutor | None = None,
    ) -> None:
        self._cfg = cfg
        self._client = client
        self._resolver = resolver or DateResolver(
            client,
            strategy=cfg.manifest_list_strategy,
            platform=cfg.platform,
        )
        self._executor = executor or DeletionExecutor(client)
        self._logger = structlog.get_logger(__name__)

    def cleanup(self, now: datetime.datetime | None = None) -> RunSummary:
        """Run one cleanup pass over the registry.

        Parameters
        ----------
        now
            Instant the retention period is measured back from.  Defaults to
            the current time.

        Returns
        -------
        RunSummary
            Counts of what happened during the run.

        Raises
        ------
        CatalogError
            If the repository catalog could not be listed.
        """
        evaluator = CutoffEvaluator(self._cfg.retention_days, now)
        summary = RunSummary()
        self._log_start(evaluator)

        try:
            repositories = self._client.list_repositories()
        except TransportError as exc:
            self._logger.error("Failed to list repositories", error=str(exc))
            raise CatalogError(f"Failed to list repositories: {exc}") from exc

        if not repositories:
            self._logger.info("No repositories found in registry")
        else:
            self._scan(repositories, evaluator, summary)

        self.report(summary)
        return summary

    def report(self, summary: RunSummary) -> None:
        """Log the summary of a run."""
        for line in summary.report_lines():
            self._logger.info(line)

    def _log_start(self, evaluator: CutoffEvaluator) -> None:
        cfg = self._cfg
        self._logger.info("Starting OCI registry cleanup")
        self._logger.info(f"Registry: {cfg.base_url}")
        self._logger.info(f"Artifact filter: {cfg.repository_filter}")
        self._logger.info(f"Tag filter: {cfg.tags_filter}")
        self._logger.info(f"Retention period: {cfg.retention_days} days")
        self._logger.info(f"Cutoff date: {evaluator.cutoff}")
        self._logger.info(f"Dry run: {str(cfg.dry_run).lower()}")

    def _scan(
        self,
        repositories: list[str],
        evaluator: CutoffEvaluator,
        summary: RunSummary,
    ) -> None:
        # Everything is submitted from this thread, so no worker ever waits
        # on another worker and a pool of one is simply sequential.
        with ThreadPoolExecutor(
            max_workers=self._cfg.batch_size, thread_name_prefix="reaper"
        ) as pool:
            listings: dict[Future[list[str]], str] = {}
            for repo in repositories:
                if not self._cfg.repository_filter.matches(repo):
                    self._logger.debug(
                        f"Skipping repository {repo} (does not match filter)"
                    )
                    continue
                summary.increment(Counter.REPOSITORIES_PROCESSED)
                listings[pool.submit(self._list_tags, repo)] = repo

            work: list[Future[None]] = []
            for listing in as_completed(listings):
                repo = listings[listing]
                for tag in listing.result():
                    work.append(
                        pool.submit(
                            self._process_tag, repo, tag, evaluator, summary
                        )
                    )
            for done in as_completed(work):
                done.result()

    def _list_tags(self, repo: str) -> list[str]:
        self._logger.info(f"Processing repository: {repo}")
        try:
            tags = self._client.list_tags(repo)
        except TransportError as exc:
            self._logger.warning(
                f"Skipping repository {repo} (could not list tags)",
                error=str(exc),
            )
            return []
        except Exception:
            self._logger.exception(f"Unexpected error listing tags for {repo}")
            return []
        if not tags:
            self._logger.debug(f"No tags found in repository: {repo}")
        return tags

    def _process_tag(
        self,
        repo: str,
        tag: str,
        evaluator: CutoffEvaluator,
        summary: RunSummary,
    ) -> None:
        summary.increment(Counter.ARTIFACTS_SCANNED)
        try:
            self._evaluate_tag(repo, tag, evaluator, summary)
        except Exception:
            self._logger.exception(
                f"Unexpected error processing {repo}:{tag}",
                repository=repo,
                tag=tag,
            )
            summary.increment(Counter.ERRORS)

    def _evaluate_tag(
        self,
        repo: str,
        tag: str,
        evaluator: CutoffEvaluator,
        summary: RunSummary,
    ) -> None:
        if not self._cfg.tags_filter.matches(tag):
            self._logger.debug(
                f"Skipping tag {repo}:{tag} (does not match tag filter)"
            )
            return

        created = self._resolver.resolve_creation_date(repo, tag)
        if created is None:
            self._logger.warning(
                f"Could not get creation date for {repo}:{tag}, skipping"
            )
            summary.increment(Counter.SKIPPED_NO_DATE)
            return
        self._logger.debug(f"Image {repo}:{tag} created at: {created}")

        try:
            expired = evaluator.is_expired(created)
        except TimestampError as exc:
            self._logger.warning(
                f"Unparseable creation date for {repo}:{tag}, skipping",
                error=str(exc),
            )
            summary.increment(Counter.SKIPPED_NO_DATE)
            return

        if not expired:
            self._logger.debug(
                f"Image {repo}:{tag} is within retention period, keeping"
            )
            return

        self._logger.info(
            f"Image {repo}:{tag} is older than "
            f"{evaluator.retention_days} days"
        )
        try:
            self._expire(repo, tag)
        except (DigestResolutionError, DeletionError) as exc:
            self._logger.error(str(exc), repository=repo, tag=tag)
            summary.increment(Counter.ERRORS)
            return
        summary.increment(Counter.DELETED)

    def _expire(self, repo: str, tag: str) -> None:
        try:
            digest = self._client.get_manifest_digest(repo, tag)
        except TransportError as exc:
            raise DigestResolutionError(
                f"Could not get digest for {repo}:{tag}: {exc}"
            ) from exc
        if digest is None:
            raise DigestResolutionError(
                f"Could not get digest for {repo}:{tag}"
            )
        result = self._executor.delete(repo, digest, dry_run=self._cfg.dry_run)
        if result == DeletionResult.FAILED:
            raise DeletionError(f"Failed to delete {repo}@{digest}")
