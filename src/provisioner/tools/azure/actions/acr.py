from __future__ import annotations

from collections.abc import Mapping

from provisioner.core.logging import get_logger
from provisioner.provisioning.models import ResourceType

from ..clients import Clients, call_azure
from ..validators import validate_name

logger = get_logger(__name__)


async def create_registry(
    *,
    clients: Clients,
    resource_group: str,
    location: str,
    name: str,
    sku: str = "Basic",
    admin_user_enabled: bool = True,
    tags: Mapping[str, str] | None = None,
) -> tuple[str, object]:
    if not validate_name(ResourceType.REGISTRY, name):
        return "error", {"message": f"invalid registry name {name!r}"}
    logger.info("registry.create", resource_group=resource_group, registry=name, sku=sku)
    reg = await call_azure(
        clients,
        clients.acr.registries.begin_create,
        resource_group,
        name,
        {
            "location": location,
            "sku": {"name": sku},
            "admin_user_enabled": bool(admin_user_enabled),
            "tags": dict(tags or {}),
        },
    )
    return "created", {
        "name": reg.name,
        "id": reg.id,
        "login_server": reg.login_server or f"{name}.azurecr.io",
    }
