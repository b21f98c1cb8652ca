"""Deduplicating load: insert only rows whose distinct key is new.

Per attempt, inside one transaction:

1. create ``tmp_<table>_<token>`` as an empty copy of the target's columns
   (ON COMMIT DROP, so it vanishes with the transaction either way)
2. COPY every record into the staging table
3. INSERT ... SELECT DISTINCT ON (keys) ... WHERE NOT EXISTS (...) into
   the target
4. commit

A failed attempt is rolled back and retried according to the RetryPolicy.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from bulkload.core.exceptions import BulkLoadError, MappingError, StagingSetupError, TransferError
from bulkload.core.logging import LoadMetrics, get_logger, log_context
from bulkload.core.models import LoadResult
from bulkload.loading.bulk import BulkLoader
from bulkload.loading.retry import RetryPolicy, RetryReport
from bulkload.loading.statements import (
    create_staging_statement,
    insert_distinct_statement,
    quote_identifier,
    staging_table_name,
)
from bulkload.mapping.descriptors import TypeDescriptor
from bulkload.mapping.registry import TypeRegistry
from bulkload.storage.target import BulkTarget

logger = get_logger(__name__)


class DistinctLoader(BulkLoader):
    """BulkLoader that also offers insert-if-not-exists loads.

    Args:
        registry: Descriptor cache (defaults to the process-wide registry)
        retry_policy: Retry behaviour (defaults to the configured policy)
        strict_connection_type: See BulkLoader
    """

    def __init__(
        self,
        registry: TypeRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        strict_connection_type: bool | None = None,
    ):
        super().__init__(registry=registry, strict_connection_type=strict_connection_type)
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    def load_distinct(
        self,
        bind: Any,
        record_type: type,
        records: Iterable[Any] | None,
    ) -> LoadResult:
        """Insert records whose distinct key is absent from the target table.

        Records sharing a distinct key collapse to the first one in input
        order. Input is materialised once so every attempt sees the same rows.

        Returns:
            LoadResult of the committed attempt; ``rows_inserted`` counts the
            rows that were actually new

        Raises:
            TransferError | StagingSetupError: All attempts failed, or (with
                RetryReport.FIRST_FAILURE) any attempt failed
            MappingError: The type declares no distinct key or cannot be mapped
            UnsupportedConnectionError: In strict mode, for a non-psycopg bind
        """
        descriptor = self.registry.resolve(record_type)
        if not descriptor.has_distinct_keys:
            raise MappingError(
                "load_distinct requires at least one Distinct() field",
                table=descriptor.table_name,
            )
        target = self._adapt(bind, descriptor)
        if target is None:
            return LoadResult.skip(descriptor.table_name)

        rows = [] if records is None else list(records)
        policy = self.retry_policy
        errors: list[BulkLoadError] = []
        delays = policy.delays()

        with log_context(load_id=uuid4().hex[:12], table=descriptor.table_name):
            logger.info("bulk_load_started", mode="distinct", rows=len(rows))
            for attempt in range(1, policy.max_attempts + 1):
                if errors:
                    delay = next(delays)
                    logger.info("distinct_load_retrying", attempt=attempt, delay_seconds=delay)
                    if delay > 0:
                        time.sleep(delay)

                try:
                    result = self._attempt(target, descriptor, rows)
                except BulkLoadError as e:
                    if not policy.is_retryable(e):
                        raise
                    errors.append(e)
                    logger.warning(
                        "distinct_load_attempt_failed",
                        attempt=attempt,
                        max_attempts=policy.max_attempts,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue

                result.attempts = attempt
                result.retried_errors = [str(e) for e in errors]
                if errors and policy.report is RetryReport.FIRST_FAILURE:
                    # The retry committed, but this policy reports the first failure
                    logger.warning(
                        "bulk_load_failed",
                        attempt=attempt,
                        rows_inserted=result.rows_inserted,
                        reported="first_failure",
                    )
                    raise policy.surfaced_error(errors)

                logger.info("bulk_load_completed", **result.model_dump(exclude={"table"}))
                return result

            error = policy.surfaced_error(errors)
            logger.error(
                "bulk_load_failed",
                attempts=len(errors),
                error=str(error),
                error_type=type(error).__name__,
            )
            raise error

    def _attempt(
        self,
        target: BulkTarget,
        descriptor: TypeDescriptor,
        rows: list[Any],
    ) -> LoadResult:
        """One full staging + insert run in its own connection scope."""
        staging = staging_table_name(descriptor.table_name)
        metrics = LoadMetrics(table=descriptor.table_name)

        with self._scope(target, descriptor):
            started = time.perf_counter()
            try:
                target.execute(create_staging_statement(staging, descriptor))
            except Exception as e:
                raise StagingSetupError(
                    f"creating staging table {staging} failed: {e}",
                    table=descriptor.table_name,
                ) from e
            metrics.record_timing("staging", time.perf_counter() - started)
            logger.debug("staging_table_created", staging_table=staging)

            metrics.rows_streamed = self._stream(
                target, descriptor, rows, into=quote_identifier(staging), metrics=metrics
            )

            started = time.perf_counter()
            try:
                metrics.rows_inserted = target.execute(
                    insert_distinct_statement(staging, descriptor)
                )
            except Exception as e:
                raise TransferError(
                    f"insert from staging table {staging} failed: {e}",
                    table=descriptor.table_name,
                ) from e
            metrics.record_timing("insert", time.perf_counter() - started)

        metrics.finish()
        return LoadResult(
            table=descriptor.table_name,
            rows_streamed=metrics.rows_streamed,
            rows_inserted=metrics.rows_inserted,
            staging_table=staging,
            duration_seconds=metrics.duration_seconds,
        )


__all__ = ["DistinctLoader"]
