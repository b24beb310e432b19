"""
Export runner orchestrator.

Coordinates the full export workflow: users → groups → memberships, each
stage pulling pages from the directory and pushing them to the delivery
channel in size-bounded batches.

Stages 1 and 2 fail the whole run on their first terminal fault. Stage 3
isolates failures per group: one group's membership query failing is
recorded and the loop moves on, unless the failure means nothing else can
succeed either (token acquisition, or an authentication failure while
publishing).
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import uuid4

from direxport.core.auth import (
    ManagedIdentityTokenProvider,
    StaticTokenProvider,
    TokenProvider,
    TokenSource,
    is_token_operation,
)
from direxport.core.backends.base import Backend
from direxport.core.backends.http_backend import HttpBackend
from direxport.core.config.loader import ConfigError, load_app_config
from direxport.core.config.models import AppConfig
from direxport.core.delivery.channel import DeliveryChannel, EventHubChannel
from direxport.core.directory.client import DirectoryClient
from direxport.core.directory.queries import group_members_url, groups_url, users_url
from direxport.core.fetch.errors import FaultCategory, FaultRecord, TerminalFailure
from direxport.core.fetch.paging import PagedFetcher, PageSource
from direxport.core.fetch.retries import Result, RetryExecutor
from direxport.core.fetch.throttling import InterCallDelay
from direxport.core.logging import ContextualLogger, get_contextual_logger
from direxport.core.publish.batcher import BatchPublisher
from direxport.core.publish.envelope import SourceType, build_envelopes
from direxport.core.telemetry import (
    LoggingTelemetryObserver,
    TelemetryEvent,
    TelemetryObserver,
    emit,
)

from .models import (
    STAGE_STATES,
    ExportRun,
    GroupMembershipOutcome,
    RunOutcome,
    RunState,
    RunStats,
    Stage,
)

PUBLISH_OPERATION_PREFIX = "publish"


@dataclass
class RunContext:
    """Context for one export run."""

    export_id: str
    trigger_context: str
    started_at: datetime
    include_extended_properties: bool
    fetcher: PagedFetcher
    publisher: BatchPublisher
    log: ContextualLogger
    stats: RunStats
    state: RunState = RunState.STARTED

    @property
    def export_timestamp(self) -> str:
        return self.started_at.isoformat()


def is_run_fatal(fault: FaultRecord) -> bool:
    """Whether a fault seen while exporting one group must stop the run.

    Token acquisition failing means no further call can be authorized.
    An authentication failure while publishing means the delivery role is
    missing, which no other group can get past either.
    """
    if is_token_operation(fault.operation):
        return True
    return (
        fault.operation.startswith(PUBLISH_OPERATION_PREFIX)
        and fault.category is FaultCategory.AUTHENTICATION
    )


class ExportRunner:
    """Orchestrates the three-stage export.

    Coordinates:
    - Per-run retry executor, token source, fetcher and publisher
    - Stage sequencing and the run state machine
    - Per-group failure isolation in the memberships stage
    - Statistics and telemetry
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        directory: PageSource,
        channel: DeliveryChannel,
        token_provider: TokenProvider,
        observer: TelemetryObserver | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        backend: Backend | None = None,
    ) -> None:
        """Initialize the export runner.

        Args:
            config: Application configuration
            directory: Page source for the remote directory
            channel: Delivery channel for published batches
            token_provider: Bearer token source
            observer: Telemetry sink (defaults to logging)
            sleep: Coroutine used for backoff and inter-call waits
            backend: Transport to close when a run finishes, if owned
        """
        self.config = config
        self.directory = directory
        self.channel = channel
        self.token_provider = token_provider
        self.observer = observer or LoggingTelemetryObserver()
        self._sleep = sleep
        self._backend = backend

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        observer: TelemetryObserver | None = None,
        backend: Backend | None = None,
    ) -> "ExportRunner":
        """Build a runner wired to the real HTTP endpoints.

        Raises:
            ConfigError: If delivery or token settings are incomplete
        """
        if not config.delivery.is_configured:
            raise ConfigError("delivery.namespace and delivery.channel_name are required")

        backend = backend or HttpBackend(timeout=config.directory.timeout_seconds)

        auth = config.auth
        token_provider: TokenProvider
        if auth.static_token:
            token_provider = StaticTokenProvider(auth.static_token)
        elif auth.managed_identity:
            token_provider = ManagedIdentityTokenProvider()
        else:
            raise ConfigError(
                "No token source configured: set auth.static_token or enable auth.managed_identity"
            )

        directory = DirectoryClient(
            backend,
            records_key=config.directory.records_key,
            next_link_key=config.directory.next_link_key,
            timeout=config.directory.timeout_seconds,
        )
        channel = EventHubChannel(
            backend,
            config.delivery.namespace,
            config.delivery.channel_name,
            timeout=config.delivery.timeout_seconds,
        )

        return cls(
            config,
            directory=directory,
            channel=channel,
            token_provider=token_provider,
            observer=observer,
            backend=backend,
        )

    async def run(
        self,
        trigger_context: str = "manual",
        include_extended_properties: bool = False,
    ) -> ExportRun:
        """Execute a complete export run.

        Args:
            trigger_context: Free-form description of what started the run
            include_extended_properties: Request the extended user field set

        Returns:
            ExportRun with outcome, statistics and any captured fault
        """
        ctx = self._create_context(trigger_context, include_extended_properties)
        ctx.log.info(
            "Export started (trigger=%s, extended=%s)",
            trigger_context,
            include_extended_properties,
        )

        fault: FaultRecord | None = None
        failed_stage: Stage | None = None

        try:
            for stage, execute_stage in (
                (Stage.USERS, self._users_stage),
                (Stage.GROUPS, self._groups_stage),
                (Stage.MEMBERSHIPS, self._memberships_stage),
            ):
                ctx.state = STAGE_STATES[stage]
                ctx.log = ctx.log.with_context(stage=stage.value)

                result = await execute_stage(ctx)
                self._sync_counters(ctx)

                if not result.ok:
                    fault = result.fault
                    failed_stage = stage
                    break

                emit(
                    self.observer,
                    TelemetryEvent.STAGE_COMPLETED,
                    export_id=ctx.export_id,
                    stage=stage.value,
                    records=result.value,
                )
        finally:
            if self._backend is not None:
                await self._backend.close()
            # Credentials reopen lazily on the next run
            if isinstance(self.token_provider, ManagedIdentityTokenProvider):
                await self.token_provider.close()

        return self._finish(ctx, fault, failed_stage)

    def _create_context(self, trigger_context: str, include_extended_properties: bool) -> RunContext:
        export_id = str(uuid4())
        retry = self.config.retry
        delivery = self.config.delivery

        executor = RetryExecutor(self.observer, export_id=export_id, sleep=self._sleep)
        tokens = TokenSource(
            self.token_provider,
            executor,
            retry.token.to_policy(),
            identity_ref=self.config.auth.identity_ref,
        )
        fetcher = PagedFetcher(
            self.directory,
            executor,
            retry.fetch.to_policy(),
            tokens,
            resource=self.config.directory.resource,
        )
        publisher = BatchPublisher(
            self.channel,
            executor,
            retry.publish.to_policy(),
            tokens,
            resource=delivery.resource,
            size_limit=delivery.max_batch_bytes,
            oversize_policy=delivery.oversize_policy,
        )

        return RunContext(
            export_id=export_id,
            trigger_context=trigger_context,
            started_at=datetime.now(timezone.utc),
            include_extended_properties=include_extended_properties,
            fetcher=fetcher,
            publisher=publisher,
            log=get_contextual_logger("orchestrator", export_id=export_id),
            stats=RunStats(),
        )

    # =========================================================================
    # Stages
    # =========================================================================

    async def _users_stage(self, ctx: RunContext) -> Result[int]:
        directory = self.config.directory
        url = users_url(directory.base_url, directory.page_size, ctx.include_extended_properties)
        return await self._export_collection(ctx, url, SourceType.USERS)

    async def _groups_stage(self, ctx: RunContext) -> Result[int]:
        directory = self.config.directory
        url = groups_url(directory.base_url, directory.page_size)
        return await self._export_collection(ctx, url, SourceType.GROUPS, collect_ids=ctx.stats.group_ids)

    async def _memberships_stage(self, ctx: RunContext) -> Result[int]:
        directory = self.config.directory
        throttle = InterCallDelay(
            self.config.memberships.inter_call_delay_seconds,
            sleep=self._sleep,
        )

        for group_id in ctx.stats.group_ids:
            await throttle.wait()

            url = group_members_url(directory.base_url, group_id, directory.page_size)
            result = await self._export_collection(ctx, url, SourceType.GROUP_MEMBERS, group_id=group_id)

            if result.ok:
                ctx.stats.group_outcomes.append(
                    GroupMembershipOutcome(group_id=group_id, success=True, record_count=result.value)
                )
                continue

            ctx.stats.group_outcomes.append(
                GroupMembershipOutcome(group_id=group_id, success=False, fault=result.fault)
            )
            if is_run_fatal(result.fault):
                return Result.failure(result.fault, result.cause)

            ctx.log.warning(
                "Membership export failed for group %s: %s",
                group_id,
                result.fault.message,
                extra={"group_id": group_id, "category": result.fault.category.value},
            )
            emit(
                self.observer,
                TelemetryEvent.GROUP_MEMBERSHIP_FAILED,
                export_id=ctx.export_id,
                group_id=group_id,
                category=result.fault.category.value,
                operation=result.fault.operation,
                message=result.fault.message,
            )

        return Result.success(ctx.stats.memberships)

    async def _export_collection(
        self,
        ctx: RunContext,
        url: str,
        source_type: SourceType,
        group_id: str | None = None,
        collect_ids: list[str] | None = None,
    ) -> Result[int]:
        """Fetch every page of a collection and publish each one.

        Returns:
            Result with the number of records exported, or the first
            terminal fault from fetching or publishing
        """
        exported = 0
        try:
            pages = ctx.fetcher.fetch(url, operation=f"fetch_{source_type.value}")
            async with aclosing(pages):
                async for page in pages:
                    if page.records:
                        envelopes = build_envelopes(
                            page.records,
                            source_type,
                            ctx.export_id,
                            ctx.export_timestamp,
                            group_id=group_id,
                        )
                        summary = await ctx.publisher.publish(
                            envelopes,
                            operation=f"{PUBLISH_OPERATION_PREFIX}_{source_type.value}",
                        )
                        if not summary.success:
                            return Result.failure(summary.fault)

                    exported += len(page.records)
                    ctx.stats.record(source_type, len(page.records))
                    if collect_ids is not None:
                        collect_ids.extend(str(r["id"]) for r in page.records if r.get("id"))

                    ctx.log.debug(
                        "Page %d: %d %s records, next=%s",
                        page.page_number,
                        len(page.records),
                        source_type.value,
                        page.has_next,
                    )
        except TerminalFailure as e:
            return Result.failure(e.fault, e)

        return Result.success(exported)

    # =========================================================================
    # Completion
    # =========================================================================

    def _sync_counters(self, ctx: RunContext) -> None:
        ctx.stats.api_calls = ctx.fetcher.calls
        ctx.stats.batches_sent = ctx.publisher.batches_sent

    def _finish(
        self,
        ctx: RunContext,
        fault: FaultRecord | None,
        failed_stage: Stage | None,
    ) -> ExportRun:
        stats = ctx.stats
        failed = fault is not None

        export_run = ExportRun(
            export_id=ctx.export_id,
            trigger_context=ctx.trigger_context,
            started_at=ctx.started_at,
            finished_at=datetime.now(timezone.utc),
            state=RunState.FAILED if failed else RunState.COMPLETED,
            outcome=RunOutcome.FAILED if failed else RunOutcome.COMPLETED,
            include_extended_properties=ctx.include_extended_properties,
            users_processed=stats.users,
            groups_processed=stats.groups,
            memberships_processed=stats.memberships,
            api_calls=stats.api_calls,
            batches_sent=stats.batches_sent,
            group_outcomes=tuple(stats.group_outcomes),
            fault=fault,
            failed_stage=failed_stage,
        )

        summary = export_run.to_dict()
        if failed:
            ctx.log.error(
                "Export failed in %s stage: %s",
                failed_stage.value if failed_stage else "unknown",
                fault.message,
                extra={"category": fault.category.value, "operation": fault.operation},
            )
            emit(self.observer, TelemetryEvent.RUN_FAILED, **summary)
        else:
            ctx.log.info(
                "Export completed: %d users, %d groups, %d memberships (%d/%d groups ok)",
                stats.users,
                stats.groups,
                stats.memberships,
                export_run.successful_group_count,
                export_run.total_groups,
            )
            emit(self.observer, TelemetryEvent.RUN_COMPLETED, **summary)

        return export_run


def run_export(
    trigger_context: str = "manual",
    include_extended_properties: bool = False,
    *,
    config: AppConfig | None = None,
    observer: TelemetryObserver | None = None,
) -> ExportRun:
    """Run one export synchronously.

    Configuration problems raise ConfigError before any stage starts;
    expected remote faults come back as a Failed ExportRun.

    Args:
        trigger_context: Free-form description of what started the run
        include_extended_properties: Request the extended user field set
        config: Configuration (default: loaded from configs/app.yaml)
        observer: Telemetry sink

    Returns:
        ExportRun with execution statistics
    """
    config = config or load_app_config()
    runner = ExportRunner.from_config(config, observer=observer)
    return asyncio.run(runner.run(trigger_context, include_extended_properties))
