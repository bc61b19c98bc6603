from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from provisioner.core.logging import get_logger
from provisioner.provisioning.models import ResourceType

from ..clients import Clients, call_azure
from ..validators import validate_location, validate_name

logger = get_logger(__name__)


async def create_resource_group(
    *,
    clients: Clients,
    resource_group: str,
    location: str,
    tags: Mapping[str, str] | None = None,
) -> tuple[str, Any]:
    if not validate_name(ResourceType.GROUP, resource_group):
        return "error", {"message": f"invalid resource group name {resource_group!r}"}
    if not validate_location(location):
        return "error", {"message": f"invalid location {location!r}"}

    logger.info("resource_group.create", resource_group=resource_group, location=location)
    result = await call_azure(
        clients,
        clients.res.resource_groups.create_or_update,
        resource_group,
        {"location": location, "tags": dict(tags or {})},
    )
    return "created", {
        "name": result.name,
        "location": result.location,
        "id": result.id,
    }
