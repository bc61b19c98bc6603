from __future__ import annotations

import ipaddress
import re

from provisioner.provisioning.models import ResourceType
from provisioner.provisioning.naming import GENERIC_POLICY, NAME_POLICIES

_LOCATION = re.compile(r"^[a-z0-9]{2,40}$")


def validate_name(kind: ResourceType, value: str | None) -> bool:
    if not value:
        return False
    policy = NAME_POLICIES.get(kind, GENERIC_POLICY)
    return policy.min_length <= len(value) <= policy.max_length and bool(
        policy.pattern.match(value)
    )


def validate_location(loc: str | None) -> bool:
    return bool(loc) and bool(_LOCATION.match(loc or ""))


def validate_ipv4(value: str | None) -> bool:
    if not value:
        return False
    try:
        return isinstance(ipaddress.ip_address(value), ipaddress.IPv4Address)
    except ValueError:
        return False
