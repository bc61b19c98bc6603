from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import overload

from provisioner.core.exceptions import InvalidPlanError
from provisioner.provisioning.models import ProvisioningStep, ResourceType
from provisioner.provisioning.naming import PROBE_SEED, NameGenerator
from provisioner.provisioning.output import HEADER_KEYS, to_upper_snake


class ProvisioningPlan(Sequence[ProvisioningStep]):
    """Validated, immutable, already topologically sorted list of steps."""

    __slots__ = ("_steps",)

    def __init__(
        self,
        steps: Iterable[ProvisioningStep],
        names: NameGenerator | None = None,
    ) -> None:
        steps = tuple(steps)
        _validate(steps, names or NameGenerator())
        self._steps = steps

    @property
    def steps(self) -> tuple[ProvisioningStep, ...]:
        return self._steps

    @overload
    def __getitem__(self, index: int) -> ProvisioningStep: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[ProvisioningStep, ...]: ...

    def __getitem__(self, index: int | slice) -> ProvisioningStep | tuple[ProvisioningStep, ...]:
        return self._steps[index]

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[ProvisioningStep]:
        return iter(self._steps)

    def __repr__(self) -> str:
        return f"ProvisioningPlan({[s.id for s in self._steps]!r})"

    def step(self, step_id: str) -> ProvisioningStep:
        for s in self._steps:
            if s.id == step_id:
                return s
        raise KeyError(step_id)

    def resolve_names(self, run_seed: int, names: NameGenerator) -> dict[str, str]:
        return {
            s.id: names.generate(s.name_template, run_seed, s.resource_type)
            for s in self._steps
            if s.name_template is not None
        }


def new_plan(
    steps: Iterable[ProvisioningStep], names: NameGenerator | None = None
) -> ProvisioningPlan:
    return ProvisioningPlan(steps, names)


def _validate(steps: tuple[ProvisioningStep, ...], names: NameGenerator) -> None:
    if not steps:
        raise InvalidPlanError("plan must contain at least one step")
    if steps[0].resource_type is not ResourceType.GROUP:
        raise InvalidPlanError(
            f"first step must be a {ResourceType.GROUP.value}, got "
            f"{steps[0].resource_type.value} ({steps[0].id!r})",
            details={"step_id": steps[0].id},
        )

    seen: set[str] = set()
    rooted: set[str] = {steps[0].id}
    exported: dict[str, str] = {}
    for index, step in enumerate(steps):
        if not step.id:
            raise InvalidPlanError(f"step at position {index} has an empty id")
        if step.id in seen:
            raise InvalidPlanError(
                f"duplicate step id {step.id!r}", details={"step_id": step.id}
            )
        if index > 0 and step.resource_type is ResourceType.GROUP:
            raise InvalidPlanError(
                f"only one {ResourceType.GROUP.value} step is allowed, "
                f"{step.id!r} is a second one",
                details={"step_id": step.id},
            )
        for dep in sorted(step.depends_on):
            if dep == step.id:
                raise InvalidPlanError(
                    f"step {step.id!r} depends on itself", details={"step_id": step.id}
                )
            if dep not in seen:
                where = "later in the plan" if any(s.id == dep for s in steps) else "undeclared"
                raise InvalidPlanError(
                    f"step {step.id!r} depends on {dep!r}, which is {where}",
                    details={"step_id": step.id, "dependency": dep},
                )
        for key in map(to_upper_snake, step.exports.values()):
            if key in HEADER_KEYS:
                raise InvalidPlanError(
                    f"step {step.id!r} exports the reserved artifact key {key!r}",
                    details={"step_id": step.id, "key": key},
                )
            if key in exported:
                raise InvalidPlanError(
                    f"artifact key {key!r} exported by both {exported[key]!r} and {step.id!r}",
                    details={"step_id": step.id, "key": key},
                )
            exported[key] = step.id
        if index > 0:
            if not step.depends_on & rooted:
                raise InvalidPlanError(
                    f"step {step.id!r} does not depend, directly or transitively, "
                    f"on the {ResourceType.GROUP.value} step {steps[0].id!r}",
                    details={"step_id": step.id},
                )
            rooted.add(step.id)
        if step.name_template is not None:
            names.generate(step.name_template, PROBE_SEED, step.resource_type)
        seen.add(step.id)
