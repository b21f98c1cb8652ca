"""Plain bulk load: stream every record straight into the target table.

The whole batch is one transaction. Either every row commits or, on any
failure, the transaction is rolled back and a TransferError is raised.
"""

from __future__ import annotations

import time
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

from bulkload.core.config import get_settings
from bulkload.core.exceptions import BulkLoadError, TransferError, UnsupportedConnectionError
from bulkload.core.logging import LoadMetrics, get_logger, log_context
from bulkload.core.models import LoadResult
from bulkload.encoding.encoder import write_rows
from bulkload.loading.statements import copy_statement, quote_relation
from bulkload.mapping.descriptors import TypeDescriptor
from bulkload.mapping.registry import TypeRegistry, default_registry
from bulkload.storage.postgres import as_target
from bulkload.storage.target import BulkTarget, connection_scope, transaction_scope

logger = get_logger(__name__)


class BulkLoader:
    """Loads records of a mapped type with binary COPY.

    Args:
        registry: Descriptor cache (defaults to the process-wide registry)
        strict_connection_type: Raise UnsupportedConnectionError for binds
            that are not psycopg-backed. When False, such loads are skipped
            with a warning. Defaults to the configured setting.
    """

    def __init__(
        self,
        registry: TypeRegistry | None = None,
        strict_connection_type: bool | None = None,
    ):
        self.registry = registry if registry is not None else default_registry
        if strict_connection_type is None:
            strict_connection_type = get_settings().strict_connection_type
        self.strict_connection_type = strict_connection_type

    def load(
        self,
        bind: Any,
        record_type: type,
        records: Iterable[Any] | None,
    ) -> LoadResult:
        """Stream ``records`` into the table mapped for ``record_type``.

        Args:
            bind: SQLAlchemy Engine or Connection (postgresql+psycopg), or a BulkTarget
            record_type: Dataclass or pydantic model describing each record
            records: Records to load; None is treated as empty. Generators
                are streamed without being materialised.

        Returns:
            LoadResult describing the committed transaction

        Raises:
            TransferError: Streaming failed; nothing was committed
            MappingError: The record type cannot be mapped
            UnsupportedConnectionError: In strict mode, for a non-psycopg bind
        """
        descriptor = self.registry.resolve(record_type)
        target = self._adapt(bind, descriptor)
        if target is None:
            return LoadResult.skip(descriptor.table_name)

        metrics = LoadMetrics(table=descriptor.table_name)
        with log_context(load_id=uuid4().hex[:12], table=descriptor.table_name):
            logger.info("bulk_load_started", mode="copy")
            try:
                with self._scope(target, descriptor):
                    metrics.rows_streamed = self._stream(
                        target, descriptor, () if records is None else records, metrics=metrics
                    )
            except BulkLoadError as e:
                logger.error("bulk_load_failed", error=str(e), error_type=type(e).__name__)
                raise

            metrics.rows_inserted = metrics.rows_streamed
            metrics.attempts = 1
            metrics.finish()
            logger.info("bulk_load_completed", **metrics.to_dict())

        return LoadResult(
            table=descriptor.table_name,
            rows_streamed=metrics.rows_streamed,
            rows_inserted=metrics.rows_inserted,
            duration_seconds=metrics.duration_seconds,
        )

    def _adapt(self, bind: Any, descriptor: TypeDescriptor) -> BulkTarget | None:
        """Resolve the bind to a BulkTarget, or None to skip the load."""
        try:
            return as_target(bind)
        except UnsupportedConnectionError as e:
            if self.strict_connection_type:
                raise
            logger.warning(
                "connection_type_unsupported",
                table=descriptor.table_name,
                error=str(e),
            )
            return None

    @contextmanager
    def _scope(self, target: BulkTarget, descriptor: TypeDescriptor) -> Generator[BulkTarget]:
        """Connection + transaction scope; driver errors become TransferError."""
        try:
            with connection_scope(target), transaction_scope(target):
                yield target
        except BulkLoadError:
            raise
        except Exception as e:
            raise TransferError(str(e), table=descriptor.table_name) from e

    def _stream(
        self,
        target: BulkTarget,
        descriptor: TypeDescriptor,
        records: Iterable[Any],
        into: str | None = None,
        metrics: LoadMetrics | None = None,
    ) -> int:
        """COPY records into ``into`` (a quoted relation) or the real table.

        Column types always come from the real table; a staging table has
        the same shape.
        """
        relation = quote_relation(descriptor.table_name)
        destination = into or relation
        started = time.perf_counter()
        try:
            types = target.column_types(relation, descriptor.column_names)
            with target.copy(copy_statement(destination, descriptor), types) as channel:
                count = write_rows(channel, records, descriptor)
        except BulkLoadError:
            raise
        except Exception as e:
            raise TransferError(
                f"COPY into {destination} failed: {e}", table=descriptor.table_name
            ) from e

        if metrics is not None:
            metrics.record_timing("copy", time.perf_counter() - started)
        return count


__all__ = ["BulkLoader"]
