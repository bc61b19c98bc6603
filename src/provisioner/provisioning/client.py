"""Boundary between the orchestrator and a cloud management API."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from provisioner.provisioning.models import ResourceType


@runtime_checkable
class ProvisioningClient(Protocol):
    """One coroutine per resource type.

    Every method returns the created resource's attributes as a flat
    ``str -> str`` mapping and raises on failure.
    """

    async def create_group(
        self, *, name: str, location: str, tags: Mapping[str, str]
    ) -> dict[str, str]: ...

    async def create_server(
        self,
        *,
        resource_group: str,
        name: str,
        location: str,
        admin_user: str,
        admin_password: str,
        tags: Mapping[str, str],
    ) -> dict[str, str]: ...

    async def create_database(
        self,
        *,
        resource_group: str,
        server: str,
        name: str,
        location: str,
        sku: str,
        tags: Mapping[str, str],
    ) -> dict[str, str]: ...

    async def add_firewall_rule(
        self,
        *,
        resource_group: str,
        server: str,
        name: str,
        start_ip: str,
        end_ip: str,
    ) -> dict[str, str]: ...

    async def create_registry(
        self,
        *,
        resource_group: str,
        name: str,
        location: str,
        sku: str,
        admin_enabled: bool,
        tags: Mapping[str, str],
    ) -> dict[str, str]: ...

    async def create_plan(
        self,
        *,
        resource_group: str,
        name: str,
        location: str,
        sku: str,
        linux: bool,
        tags: Mapping[str, str],
    ) -> dict[str, str]: ...

    async def create_app_instance(
        self,
        *,
        resource_group: str,
        name: str,
        plan: str,
        runtime: str,
        tags: Mapping[str, str],
    ) -> dict[str, str]: ...

    async def bind_connection_string(
        self,
        *,
        resource_group: str,
        app_names: Sequence[str],
        connection_string: str,
        settings: Mapping[str, str],
    ) -> dict[str, str]: ...

    async def enable_cors(
        self,
        *,
        resource_group: str,
        app_names: Sequence[str],
        allowed_origins: Sequence[str],
    ) -> dict[str, str]: ...


CLIENT_METHODS: Mapping[ResourceType, str] = {
    ResourceType.GROUP: "create_group",
    ResourceType.SERVER: "create_server",
    ResourceType.DATABASE: "create_database",
    ResourceType.FIREWALL_RULE: "add_firewall_rule",
    ResourceType.REGISTRY: "create_registry",
    ResourceType.PLAN: "create_plan",
    ResourceType.APP_INSTANCE: "create_app_instance",
    ResourceType.CONNECTION_BINDING: "bind_connection_string",
    ResourceType.CORS_RULE: "enable_cors",
}
