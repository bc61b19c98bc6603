"""Run-scoped resource naming.

Every generated name is ``<label><separator><run_seed>``: the same label and
seed always give the same name, and two runs never share a seed. Labels are
normalised to what the resource type accepts, but a name that is still too
long or malformed is rejected instead of truncated, since trimming the seed
would give up uniqueness across runs.
"""

from __future__ import annotations

import re
import time
from collections.abc import Mapping
from dataclasses import dataclass

from provisioner.core.exceptions import InvalidNameError
from provisioner.provisioning.models import ResourceType

# Widest seed a run can produce: milliseconds since the epoch stay at 13 digits
# until the year 2286.
PROBE_SEED = 9_999_999_999_999


@dataclass(frozen=True)
class NamePolicy:
    max_length: int
    pattern: re.Pattern[str]
    separator: str = "-"
    lowercase: bool = True
    min_length: int = 1
    strip_chars: str = ""


NAME_POLICIES: Mapping[ResourceType, NamePolicy] = {
    ResourceType.GROUP: NamePolicy(
        90, re.compile(r"^[A-Za-z0-9._()-]*[A-Za-z0-9_()-]$"), lowercase=False
    ),
    ResourceType.SERVER: NamePolicy(63, re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")),
    ResourceType.DATABASE: NamePolicy(128, re.compile(r"^[A-Za-z0-9_-]+$"), lowercase=False),
    ResourceType.FIREWALL_RULE: NamePolicy(
        128, re.compile(r"^[A-Za-z0-9_-]+$"), lowercase=False
    ),
    ResourceType.REGISTRY: NamePolicy(
        50, re.compile(r"^[a-z0-9]+$"), separator="", min_length=5, strip_chars="-_."
    ),
    ResourceType.PLAN: NamePolicy(40, re.compile(r"^[A-Za-z0-9-]+$"), lowercase=False),
    ResourceType.APP_INSTANCE: NamePolicy(
        60, re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$"), min_length=2
    ),
}

GENERIC_POLICY = NamePolicy(80, re.compile(r"^[A-Za-z0-9._-]+$"), lowercase=False)


def new_run_seed() -> int:
    """Wall-clock milliseconds, taken once at the start of a run."""
    return time.time_ns() // 1_000_000


class NameGenerator:
    def __init__(self, policies: Mapping[ResourceType, NamePolicy] | None = None) -> None:
        self._policies = dict(NAME_POLICIES if policies is None else policies)

    def policy_for(self, resource_type: ResourceType) -> NamePolicy:
        return self._policies.get(resource_type, GENERIC_POLICY)

    def generate(
        self,
        base_label: str,
        run_seed: int,
        resource_type: ResourceType = ResourceType.GROUP,
    ) -> str:
        if run_seed < 0:
            raise InvalidNameError(
                f"run seed must be non-negative, got {run_seed}",
                name=base_label,
                resource_type=resource_type.value,
            )
        policy = self.policy_for(resource_type)
        label = base_label.strip()
        if policy.lowercase:
            label = label.lower()
        for ch in policy.strip_chars:
            label = label.replace(ch, "")
        name = f"{label}{policy.separator}{run_seed}" if label else str(run_seed)
        self.validate(name, resource_type)
        return name

    def validate(self, name: str, resource_type: ResourceType) -> None:
        policy = self.policy_for(resource_type)
        if not policy.min_length <= len(name) <= policy.max_length:
            raise InvalidNameError(
                f"{resource_type.value} name {name!r} must be between "
                f"{policy.min_length} and {policy.max_length} characters",
                name=name,
                resource_type=resource_type.value,
            )
        if not policy.pattern.match(name):
            raise InvalidNameError(
                f"{resource_type.value} name {name!r} contains characters "
                f"outside {policy.pattern.pattern}",
                name=name,
                resource_type=resource_type.value,
            )
