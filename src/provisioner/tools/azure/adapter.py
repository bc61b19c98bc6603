"""ProvisioningClient backed by the Azure management SDK."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from types import TracebackType
from typing import Any

from provisioner.core.azure_auth import build_async_credential, verify_credential
from provisioner.core.config import AzureConfig
from provisioner.core.logging import get_logger

from .actions import acr, resource_groups, sql, webapp
from .clients import AzureOperationError, Clients, build_clients

logger = get_logger(__name__)

CONNECTION_STRING_SETTING = "ConnectionStrings__DefaultConnection"


def _unwrap(operation: str, outcome: tuple[str, Any]) -> dict[str, str]:
    status, payload = outcome
    if status == "error":
        message = payload.get("message") if isinstance(payload, dict) else str(payload)
        raise AzureOperationError(
            code="validation_error",
            message=f"{operation}: {message}",
            status_code=None,
            retryable=False,
        )
    return {k: str(v) for k, v in payload.items() if v is not None}


class AzureProvisioningClient:
    def __init__(self, clients: Clients) -> None:
        self._clients = clients

    @classmethod
    async def connect(cls, cfg: AzureConfig, *, verify: bool = True) -> AzureProvisioningClient:
        credential = build_async_credential(cfg)
        try:
            if verify:
                await verify_credential(credential, cfg)
            clients = build_clients(cfg, credential)
        except BaseException:
            await credential.close()
            raise
        return cls(clients)

    async def close(self) -> None:
        await self._clients.close()

    async def __aenter__(self) -> AzureProvisioningClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def create_group(
        self, *, name: str, location: str, tags: Mapping[str, str]
    ) -> dict[str, str]:
        return _unwrap(
            "create_group",
            await resource_groups.create_resource_group(
                clients=self._clients, resource_group=name, location=location, tags=tags
            ),
        )

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
        return _unwrap(
            "create_server",
            await sql.create_sql_server(
                clients=self._clients,
                resource_group=resource_group,
                location=location,
                server_name=name,
                sql_admin_user=admin_user,
                sql_admin_password=admin_password,
                tags=tags,
            ),
        )

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
        return _unwrap(
            "create_database",
            await sql.create_sql_database(
                clients=self._clients,
                resource_group=resource_group,
                location=location,
                server_name=server,
                db_name=name,
                service_objective=sku,
                tags=tags,
            ),
        )

    async def add_firewall_rule(
        self,
        *,
        resource_group: str,
        server: str,
        name: str,
        start_ip: str,
        end_ip: str,
    ) -> dict[str, str]:
        return _unwrap(
            "add_firewall_rule",
            await sql.create_firewall_rule(
                clients=self._clients,
                resource_group=resource_group,
                server_name=server,
                rule_name=name,
                start_ip=start_ip,
                end_ip=end_ip,
            ),
        )

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
        return _unwrap(
            "create_registry",
            await acr.create_registry(
                clients=self._clients,
                resource_group=resource_group,
                location=location,
                name=name,
                sku=sku,
                admin_user_enabled=admin_enabled,
                tags=tags,
            ),
        )

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
        return _unwrap(
            "create_plan",
            await webapp.create_plan(
                clients=self._clients,
                resource_group=resource_group,
                name=name,
                location=location,
                sku=sku,
                linux=linux,
                tags=tags,
            ),
        )

    async def create_app_instance(
        self,
        *,
        resource_group: str,
        name: str,
        plan: str,
        runtime: str,
        tags: Mapping[str, str],
    ) -> dict[str, str]:
        return _unwrap(
            "create_app_instance",
            await webapp.create_webapp(
                clients=self._clients,
                resource_group=resource_group,
                name=name,
                plan=plan,
                runtime=runtime,
                tags=tags,
            ),
        )

    async def bind_connection_string(
        self,
        *,
        resource_group: str,
        app_names: Sequence[str],
        connection_string: str,
        settings: Mapping[str, str],
    ) -> dict[str, str]:
        merged = {CONNECTION_STRING_SETTING: connection_string, **settings}
        for name in app_names:
            _unwrap(
                "bind_connection_string",
                await webapp.merge_app_settings(
                    clients=self._clients,
                    resource_group=resource_group,
                    name=name,
                    settings=merged,
                ),
            )
        return {"connection_string": connection_string, "bound_apps": ",".join(app_names)}

    async def enable_cors(
        self,
        *,
        resource_group: str,
        app_names: Sequence[str],
        allowed_origins: Sequence[str],
    ) -> dict[str, str]:
        for name in app_names:
            _unwrap(
                "enable_cors",
                await webapp.add_cors_origins(
                    clients=self._clients,
                    resource_group=resource_group,
                    name=name,
                    allowed_origins=allowed_origins,
                ),
            )
        return {"allowed_origins": ",".join(allowed_origins), "apps": ",".join(app_names)}
