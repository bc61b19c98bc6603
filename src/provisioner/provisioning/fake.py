"""Deterministic in-memory client for exercising plans without Azure."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from provisioner.tools.azure.clients import AzureOperationError

FAKE_SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"


@dataclass(frozen=True)
class RecordedCall:
    method: str
    params: dict[str, Any]


@dataclass
class FakeProvisioningClient:
    """Returns Azure-shaped attributes and fails on request.

    ``fail_on`` holds method names (``"create_database"``), resource names, or
    the labels names are generated from (``"AllowMyIP"`` matches
    ``AllowMyIP-<seed>``); any call matching one raises ``AzureOperationError``.
    """

    fail_on: Iterable[str] = ()
    subscription_id: str = FAKE_SUBSCRIPTION_ID
    calls: list[RecordedCall] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.fail_on = frozenset(self.fail_on)

    def called(self, method: str) -> list[dict[str, Any]]:
        return [c.params for c in self.calls if c.method == method]

    def _fails_for(self, name: str) -> bool:
        return any(re.fullmatch(re.escape(entry) + r"-?\d*", name) for entry in self.fail_on)

    def _enter(self, method: str, params: dict[str, Any]) -> None:
        self.calls.append(RecordedCall(method, dict(params)))
        name = params.get("name")
        if method in self.fail_on or (name is not None and self._fails_for(str(name))):
            raise AzureOperationError(
                code="http_400",
                message=f"injected failure for {method}({name or ''})",
                status_code=400,
                retryable=False,
            )

    def _id(self, resource_group: str, provider: str, *parts: str) -> str:
        path = "/".join(parts)
        return (
            f"/subscriptions/{self.subscription_id}/resourceGroups/{resource_group}"
            f"/providers/{provider}/{path}"
        )

    async def create_group(
        self, *, name: str, location: str, tags: Mapping[str, str]
    ) -> dict[str, str]:
        self._enter("create_group", {"name": name, "location": location, "tags": tags})
        return {
            "name": name,
            "location": location,
            "id": f"/subscriptions/{self.subscription_id}/resourceGroups/{name}",
        }

    async def create_server(
        self,
        *,
        resource_group: str,
        name: str,
        location: str,
        admin_user: str,
        admin_password: str,
        tags: Mapping[str, str],
    ) -> dict[str, str]:
        self._enter(
            "create_server",
            {
                "resource_group": resource_group,
                "name": name,
                "location": location,
                "admin_user": admin_user,
                "admin_password": admin_password,
                "tags": tags,
            },
        )
        return {
            "name": name,
            "id": self._id(resource_group, "Microsoft.Sql", "servers", name),
            "fqdn": f"{name}.database.windows.net",
            "admin_user": admin_user,
        }

    async def create_database(
        self,
        *,
        resource_group: str,
        server: str,
        name: str,
        location: str,
        sku: str,
        tags: Mapping[str, str],
    ) -> dict[str, str]:
        self._enter(
            "create_database",
            {
                "resource_group": resource_group,
                "server": server,
                "name": name,
                "location": location,
                "sku": sku,
                "tags": tags,
            },
        )
        return {
            "name": name,
            "id": self._id(resource_group, "Microsoft.Sql", "servers", server, "databases", name),
            "sku": sku,
        }

    async def add_firewall_rule(
        self,
        *,
        resource_group: str,
        server: str,
        name: str,
        start_ip: str,
        end_ip: str,
    ) -> dict[str, str]:
        self._enter(
            "add_firewall_rule",
            {
                "resource_group": resource_group,
                "server": server,
                "name": name,
                "start_ip": start_ip,
                "end_ip": end_ip,
            },
        )
        return {"name": name, "start_ip": start_ip, "end_ip": end_ip}

    async def create_registry(
        self,
        *,
        resource_group: str,
        name: str,
        location: str,
        sku: str,
        admin_enabled: bool,
        tags: Mapping[str, str],
    ) -> dict[str, str]:
        self._enter(
            "create_registry",
            {
                "resource_group": resource_group,
                "name": name,
                "location": location,
                "sku": sku,
                "admin_enabled": admin_enabled,
                "tags": tags,
            },
        )
        return {
            "name": name,
            "id": self._id(resource_group, "Microsoft.ContainerRegistry", "registries", name),
            "login_server": f"{name}.azurecr.io",
        }

    async def create_plan(
        self,
        *,
        resource_group: str,
        name: str,
        location: str,
        sku: str,
        linux: bool,
        tags: Mapping[str, str],
    ) -> dict[str, str]:
        self._enter(
            "create_plan",
            {
                "resource_group": resource_group,
                "name": name,
                "location": location,
                "sku": sku,
                "linux": linux,
                "tags": tags,
            },
        )
        return {
            "name": name,
            "id": self._id(resource_group, "Microsoft.Web", "serverfarms", name),
            "sku": sku,
        }

    async def create_app_instance(
        self,
        *,
        resource_group: str,
        name: str,
        plan: str,
        runtime: str,
        tags: Mapping[str, str],
    ) -> dict[str, str]:
        self._enter(
            "create_app_instance",
            {
                "resource_group": resource_group,
                "name": name,
                "plan": plan,
                "runtime": runtime,
                "tags": tags,
            },
        )
        return {
            "name": name,
            "id": self._id(resource_group, "Microsoft.Web", "sites", name),
            "url": f"https://{name}.azurewebsites.net",
        }

    async def bind_connection_string(
        self,
        *,
        resource_group: str,
        app_names: Sequence[str],
        connection_string: str,
        settings: Mapping[str, str],
    ) -> dict[str, str]:
        self._enter(
            "bind_connection_string",
            {
                "resource_group": resource_group,
                "app_names": list(app_names),
                "connection_string": connection_string,
                "settings": dict(settings),
            },
        )
        return {"connection_string": connection_string, "bound_apps": ",".join(app_names)}

    async def enable_cors(
        self,
        *,
        resource_group: str,
        app_names: Sequence[str],
        allowed_origins: Sequence[str],
    ) -> dict[str, str]:
        self._enter(
            "enable_cors",
            {
                "resource_group": resource_group,
                "app_names": list(app_names),
                "allowed_origins": list(allowed_origins),
            },
        )
        return {"allowed_origins": ",".join(allowed_origins), "apps": ",".join(app_names)}
