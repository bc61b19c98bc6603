from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from provisioner.core.exceptions import ErrorKind, ProvisioningError


class ResourceType(str, Enum):
    GROUP = "Group"
    SERVER = "Server"
    DATABASE = "Database"
    FIREWALL_RULE = "FirewallRule"
    REGISTRY = "Registry"
    PLAN = "Plan"
    APP_INSTANCE = "AppInstance"
    CONNECTION_BINDING = "ConnectionBinding"
    CORS_RULE = "CorsRule"


class RunStatus(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    COMPLETED = "Completed"
    ABORTED = "Aborted"


_TRANSITIONS: frozenset[tuple[RunStatus, RunStatus]] = frozenset(
    {
        (RunStatus.IDLE, RunStatus.RUNNING),
        (RunStatus.IDLE, RunStatus.ABORTED),
        (RunStatus.RUNNING, RunStatus.COMPLETED),
        (RunStatus.RUNNING, RunStatus.ABORTED),
    }
)

ParamsFn = Callable[["RunContext"], dict[str, Any]]


def _no_params(_: RunContext) -> dict[str, Any]:
    return {}


@dataclass(frozen=True)
class ProvisioningStep:
    """One declarative "create or configure" unit of a plan.

    ``params`` must be a pure function of the run context; it may read names
    and attributes of earlier steps but must not mutate the context.
    ``exports`` renames client attributes to artifact keys; attributes that
    are not exported are written as ``<STEP_ID>_<ATTRIBUTE>``.
    """

    id: str
    resource_type: ResourceType
    description: str = ""
    depends_on: frozenset[str] = frozenset()
    required: bool = True
    name_template: str | None = None
    params: ParamsFn = _no_params
    exports: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "depends_on", frozenset(self.depends_on))
        object.__setattr__(self, "exports", MappingProxyType(dict(self.exports)))
        if not self.description:
            object.__setattr__(self, "description", f"Creating {self.resource_type.value} {self.id}")


@dataclass(frozen=True)
class ResourceRecord:
    step_id: str
    resource_type: ResourceType
    name: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    exports: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "attributes", MappingProxyType({str(k): str(v) for k, v in self.attributes.items()})
        )
        object.__setattr__(self, "exports", MappingProxyType(dict(self.exports)))


@dataclass(frozen=True)
class StepWarning:
    step_id: str
    cause: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": ErrorKind.STEP_WARNING.value, "step_id": self.step_id, "cause": self.cause}

    def __str__(self) -> str:
        return f"{self.step_id}: {self.cause}"


@dataclass
class RunContext:
    run_seed: int
    names: Mapping[str, str] = field(default_factory=dict)
    records: list[ResourceRecord] = field(default_factory=list)
    warnings: list[StepWarning] = field(default_factory=list)
    status: RunStatus = RunStatus.IDLE
    failure: ProvisioningError | None = None

    def transition(self, new_status: RunStatus) -> None:
        if (self.status, new_status) not in _TRANSITIONS:
            raise RuntimeError(
                f"invalid run transition {self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    def append(self, record: ResourceRecord) -> None:
        if self.has_record(record.step_id):
            raise RuntimeError(f"step {record.step_id!r} already produced a record")
        self.records.append(record)

    def has_record(self, step_id: str) -> bool:
        return any(r.step_id == step_id for r in self.records)

    def record(self, step_id: str) -> ResourceRecord:
        for r in self.records:
            if r.step_id == step_id:
                return r
        raise KeyError(f"no record for step {step_id!r}")

    def attribute(self, step_id: str, key: str) -> str:
        return self.record(step_id).attributes[key]

    def name(self, step_id: str) -> str:
        return self.names[step_id]

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED

    def raise_for_status(self) -> None:
        if self.status is RunStatus.ABORTED and self.failure is not None:
            raise self.failure

    def summary(self) -> dict[str, Any]:
        return {
            "run_seed": self.run_seed,
            "status": self.status.value,
            "records": len(self.records),
            "warnings": [w.to_dict() for w in self.warnings],
            "failure": self.failure.message if self.failure else None,
        }
