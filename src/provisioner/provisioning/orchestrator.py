from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from provisioner.core.exceptions import ProvisioningError, RunCancelledError, StepFailure
from provisioner.core.logging import get_logger, redact
from provisioner.provisioning.client import CLIENT_METHODS, ProvisioningClient
from provisioner.provisioning.models import (
    ProvisioningStep,
    ResourceRecord,
    RunContext,
    RunStatus,
    StepWarning,
)
from provisioner.provisioning.naming import NameGenerator, new_run_seed
from provisioner.provisioning.plan import ProvisioningPlan

logger = get_logger(__name__)
tracer = trace.get_tracer(__name__)

Echo = Callable[[str], Any]


class Orchestrator:
    """Executes a plan one step at a time against a provisioning client.

    A failing required step aborts the run; a failing optional step is
    recorded as a warning and the run carries on. Nothing is retried and
    nothing created before an abort is rolled back.
    """

    def __init__(
        self,
        client: ProvisioningClient,
        names: NameGenerator | None = None,
        echo: Echo | None = print,
    ) -> None:
        self._client = client
        self._names = names or NameGenerator()
        self._echo = echo

    async def run(
        self,
        plan: ProvisioningPlan,
        *,
        run_seed: int | None = None,
        cancel: asyncio.Event | None = None,
    ) -> RunContext:
        seed = new_run_seed() if run_seed is None else run_seed
        ctx = RunContext(run_seed=seed, names=plan.resolve_names(seed, self._names))
        total = len(plan)
        log = logger.bind(run_seed=seed, steps=total)

        with tracer.start_as_current_span("provision_run") as span:
            span.set_attributes({"run.seed": seed, "run.steps": total})
            ctx.transition(RunStatus.RUNNING)
            log.info("provision_run.start")
            started = time.perf_counter()

            for position, step in enumerate(plan, 1):
                if cancel is not None and cancel.is_set():
                    self._abort(ctx, RunCancelledError(step.id))
                    self._progress(position, total, step, "cancelled")
                    break
                if not await self._execute(ctx, step, position, total):
                    break
            else:
                ctx.transition(RunStatus.COMPLETED)

            duration = time.perf_counter() - started
            span.set_attributes(
                {
                    "run.status": ctx.status.value,
                    "run.records": len(ctx.records),
                    "run.warnings": len(ctx.warnings),
                }
            )
            if ctx.status is RunStatus.COMPLETED:
                span.set_status(Status(StatusCode.OK))
                log.info("provision_run.completed", duration_s=round(duration, 3), **ctx.summary())
            else:
                span.set_status(Status(StatusCode.ERROR, str(ctx.failure)))
                log.error("provision_run.aborted", duration_s=round(duration, 3), **ctx.summary())
        return ctx

    async def _execute(
        self, ctx: RunContext, step: ProvisioningStep, position: int, total: int
    ) -> bool:
        """Run one step; return False when the run has to stop."""
        log = logger.bind(run_seed=ctx.run_seed, step_id=step.id, step=f"{position}/{total}")
        missing = sorted(dep for dep in step.depends_on if not ctx.has_record(dep))
        if missing:
            cause = f"dependencies without a record: {', '.join(missing)}"
            if step.required:
                self._abort(ctx, StepFailure(step.id, cause))
                self._progress(position, total, step, "failed")
                return False
            ctx.warnings.append(StepWarning(step.id, cause))
            log.warning("provision_step.skipped", reason=cause)
            self._progress(position, total, step, "skipped")
            return True

        with tracer.start_as_current_span("provision_step") as span:
            span.set_attributes(
                {
                    "step.id": step.id,
                    "step.resource_type": step.resource_type.value,
                    "step.required": step.required,
                    "step.position": position,
                }
            )
            try:
                params = step.params(ctx)
                log.debug("provision_step.start", params=redact(params))
                method = getattr(self._client, CLIENT_METHODS[step.resource_type])
                attributes = dict(await method(**params) or {})
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                if step.required:
                    log.error(
                        "provision_step.failed",
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    self._abort(ctx, StepFailure(step.id, exc))
                    self._progress(position, total, step, "failed")
                    return False
                warning = StepWarning(step.id, f"{type(exc).__name__}: {exc}")
                ctx.warnings.append(warning)
                log.warning("provision_step.soft_failed", error=warning.cause)
                self._progress(position, total, step, "failed")
                return True

            ctx.append(
                ResourceRecord(
                    step_id=step.id,
                    resource_type=step.resource_type,
                    name=ctx.names.get(step.id) or attributes.get("name") or step.id,
                    attributes=attributes,
                    exports=step.exports,
                )
            )
            span.set_status(Status(StatusCode.OK))
            log.info("provision_step.done")
            self._progress(position, total, step, "done")
            return True

    def _abort(self, ctx: RunContext, error: ProvisioningError) -> None:
        ctx.failure = error
        ctx.transition(RunStatus.ABORTED)

    def _progress(self, position: int, total: int, step: ProvisioningStep, outcome: str) -> None:
        if self._echo is not None:
            self._echo(f"[{position}/{total}] {step.description}... {outcome}")
