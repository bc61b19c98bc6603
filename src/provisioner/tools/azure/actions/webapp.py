from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from azure.mgmt.web.models import (
    AppServicePlan,
    CorsSettings,
    Site,
    SiteConfig,
    SkuDescription,
    StringDictionary,
)

from provisioner.core.logging import get_logger
from provisioner.provisioning.models import ResourceType

from ..clients import Clients, call_azure
from ..validators import validate_name

logger = get_logger(__name__)


def linux_fx_version(runtime: str) -> str:
    """``DOTNETCORE:8.0`` (az CLI spelling) -> ``DOTNETCORE|8.0``."""
    return runtime.replace(":", "|", 1) if "|" not in runtime else runtime


async def create_plan(
    *,
    clients: Clients,
    resource_group: str,
    name: str,
    location: str,
    sku: str,
    linux: bool = True,
    tags: Mapping[str, str] | None = None,
) -> tuple[str, Any]:
    if not validate_name(ResourceType.PLAN, name):
        return "error", {"message": f"invalid app service plan name {name!r}"}
    plan_obj = AppServicePlan(
        location=location,
        reserved=bool(linux),
        sku=SkuDescription(name=sku),
        tags=dict(tags or {}),
    )
    logger.info("app_service_plan.create", resource_group=resource_group, plan=name, sku=sku)
    created = await call_azure(
        clients, clients.web.app_service_plans.begin_create_or_update, resource_group, name, plan_obj
    )
    return "created", {"name": created.name, "id": created.id, "sku": sku}


async def create_webapp(
    *,
    clients: Clients,
    resource_group: str,
    name: str,
    plan: str,
    runtime: str | None = None,
    tags: Mapping[str, str] | None = None,
) -> tuple[str, Any]:
    if not validate_name(ResourceType.APP_INSTANCE, name):
        return "error", {"message": f"invalid webapp name {name!r}"}
    p = await call_azure(clients, clients.web.app_service_plans.get, resource_group, plan)
    if runtime and not getattr(p, "reserved", False):
        return "error", {"message": "runtime requires linux plan"}

    site_cfg = SiteConfig(linux_fx_version=linux_fx_version(runtime)) if runtime else None
    site = Site(
        location=p.location,
        server_farm_id=p.id,
        site_config=site_cfg,
        tags=dict(tags or {}),
    )
    logger.info("webapp.create", resource_group=resource_group, webapp=name, plan=plan)
    created = await call_azure(
        clients, clients.web.web_apps.begin_create_or_update, resource_group, name, site
    )
    host = created.default_host_name or f"{name}.azurewebsites.net"
    return "created", {"name": created.name, "id": created.id, "url": f"https://{host}"}


async def merge_app_settings(
    *,
    clients: Clients,
    resource_group: str,
    name: str,
    settings: Mapping[str, str],
) -> tuple[str, Any]:
    current = await call_azure(
        clients, clients.web.web_apps.list_application_settings, resource_group, name
    )
    merged = dict(getattr(current, "properties", None) or {})
    merged.update(settings)
    logger.info(
        "webapp.app_settings.update",
        resource_group=resource_group,
        webapp=name,
        keys=sorted(settings),
    )
    await call_azure(
        clients,
        clients.web.web_apps.update_application_settings,
        resource_group,
        name,
        StringDictionary(properties=merged),
    )
    return "updated", {"name": name, "keys": sorted(merged)}


async def add_cors_origins(
    *,
    clients: Clients,
    resource_group: str,
    name: str,
    allowed_origins: Sequence[str],
) -> tuple[str, Any]:
    config = await call_azure(clients, clients.web.web_apps.get_configuration, resource_group, name)
    existing = list(getattr(getattr(config, "cors", None), "allowed_origins", None) or [])
    origins = existing + [o for o in allowed_origins if o not in existing]
    config.cors = CorsSettings(allowed_origins=origins)
    logger.info("webapp.cors.update", resource_group=resource_group, webapp=name, origins=origins)
    await call_azure(
        clients, clients.web.web_apps.update_configuration, resource_group, name, config
    )
    return "updated", {"name": name, "allowed_origins": origins}
