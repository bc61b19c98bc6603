from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from provisioner.core.logging import get_logger
from provisioner.provisioning.models import ResourceType

from ..clients import Clients, call_azure
from ..validators import validate_ipv4, validate_name

logger = get_logger(__name__)


async def create_sql_server(
    *,
    clients: Clients,
    resource_group: str,
    location: str,
    server_name: str,
    sql_admin_user: str,
    sql_admin_password: str,
    tags: Mapping[str, str] | None = None,
) -> tuple[str, Any]:
    if not validate_name(ResourceType.SERVER, server_name):
        return "error", {"message": f"invalid sql server name {server_name!r}"}
    logger.info("sql_server.create", resource_group=resource_group, server=server_name)
    server = await call_azure(
        clients,
        clients.sql.servers.begin_create_or_update,
        resource_group,
        server_name,
        {
            "location": location,
            "administrator_login": sql_admin_user,
            "administrator_login_password": sql_admin_password,
            "version": "12.0",
            "tags": dict(tags or {}),
        },
    )
    return "created", {
        "name": server.name,
        "id": server.id,
        "fqdn": server.fully_qualified_domain_name or f"{server_name}.database.windows.net",
        "admin_user": sql_admin_user,
    }


async def create_sql_database(
    *,
    clients: Clients,
    resource_group: str,
    location: str,
    server_name: str,
    db_name: str,
    service_objective: str = "Basic",
    tags: Mapping[str, str] | None = None,
) -> tuple[str, Any]:
    if not validate_name(ResourceType.DATABASE, db_name):
        return "error", {"message": f"invalid database name {db_name!r}"}
    logger.info(
        "sql_database.create", resource_group=resource_group, server=server_name, db=db_name
    )
    db = await call_azure(
        clients,
        clients.sql.databases.begin_create_or_update,
        resource_group,
        server_name,
        db_name,
        {"location": location, "sku": {"name": service_objective}, "tags": dict(tags or {})},
    )
    return "created", {"name": db.name, "id": db.id, "sku": service_objective}


async def create_firewall_rule(
    *,
    clients: Clients,
    resource_group: str,
    server_name: str,
    rule_name: str,
    start_ip: str,
    end_ip: str,
) -> tuple[str, Any]:
    if not (validate_ipv4(start_ip) and validate_ipv4(end_ip)):
        return "error", {"message": f"invalid firewall range {start_ip!r}-{end_ip!r}"}
    logger.info(
        "sql_firewall.create",
        resource_group=resource_group,
        server=server_name,
        rule=rule_name,
        start_ip=start_ip,
        end_ip=end_ip,
    )
    rule = await call_azure(
        clients,
        clients.sql.firewall_rules.create_or_update,
        resource_group,
        server_name,
        rule_name,
        {"start_ip_address": start_ip, "end_ip_address": end_ip},
    )
    return "created", {
        "name": rule.name,
        "start_ip": rule.start_ip_address or start_ip,
        "end_ip": rule.end_ip_address or end_ip,
    }
