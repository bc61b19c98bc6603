from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import TextIO

from provisioner.core.exceptions import InvalidPlanError
from provisioner.core.logging import get_logger
from provisioner.provisioning.models import ResourceRecord, RunContext, RunStatus

logger = get_logger(__name__)

HEADER_KEYS = frozenset({"STATUS", "RUN_SEED", "FAILED_STEP"})

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_KEY = re.compile(r"[^A-Za-z0-9]+")


def to_upper_snake(key: str) -> str:
    """``connectionString`` / ``user-service.url`` -> ``CONNECTION_STRING`` / ``USER_SERVICE_URL``."""
    key = _CAMEL_BOUNDARY.sub("_", key)
    return _NON_KEY.sub("_", key).strip("_").upper()


def _escape(value: str) -> str:
    return value.replace("\r", "\\r").replace("\n", "\\n")


def record_pairs(record: ResourceRecord) -> list[tuple[str, str]]:
    pairs = []
    for attr, value in record.attributes.items():
        key = record.exports.get(attr) or f"{record.step_id}_{attr}"
        pairs.append((to_upper_snake(key), value))
    return pairs


def artifact_pairs(ctx: RunContext) -> list[tuple[str, str]]:
    """All lines of the artifact, in order.

    Raises ``InvalidPlanError`` when two attributes map to the same key; the
    fallback ``<STEP_ID>_<ATTRIBUTE>`` keys depend on what the client returns,
    so this cannot be ruled out when the plan is built.
    """
    pairs = [("STATUS", ctx.status.value), ("RUN_SEED", str(ctx.run_seed))]
    if ctx.status is RunStatus.ABORTED and ctx.failure is not None:
        failed = getattr(ctx.failure, "step_id", None)
        if failed:
            pairs.append(("FAILED_STEP", failed))
    owners = {key: "<header>" for key, _ in pairs}
    for record in ctx.records:
        for key, value in record_pairs(record):
            if key in owners:
                raise InvalidPlanError(
                    f"artifact key {key!r} written by both {owners[key]!r} and {record.step_id!r}",
                    details={"key": key, "step_id": record.step_id},
                )
            owners[key] = record.step_id
            pairs.append((key, value))
    return pairs


def write_artifact(ctx: RunContext, dest: TextIO) -> None:
    for key, value in artifact_pairs(ctx):
        dest.write(f"{key}={_escape(value)}\n")


def save_artifact(ctx: RunContext, path: Path | str) -> Path:
    """Write the artifact next to ``path`` and move it into place."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            write_artifact(ctx, fh)
        os.replace(tmp, target)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    logger.info(
        "artifact.saved",
        path=str(target),
        status=ctx.status.value,
        records=len(ctx.records),
    )
    return target
