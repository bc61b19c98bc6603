import asyncio
from types import SimpleNamespace
from typing import Any

import pytest
from azure.core.exceptions import ClientAuthenticationError

from provisioner.core.config import AzureConfig
from provisioner.core.exceptions import ConfigurationError
from provisioner.tools.azure import adapter
from provisioner.tools.azure.adapter import CONNECTION_STRING_SETTING, AzureProvisioningClient
from provisioner.tools.azure.clients import AzureOperationError, Clients


class DummyPoller:
    def __init__(self, value: Any) -> None:
        self._value = value

    def status(self) -> str:
        return "Succeeded"

    async def result(self) -> Any:
        return self._value


class Recorder:
    """Stands in for an SDK operations group; every call is logged."""

    def __init__(self, **responses: Any) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._responses = responses

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        async def op(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((name, args))
            value = self._responses[name]
            if isinstance(value, BaseException):
                raise value
            return value

        return op


def _clients(**groups: Any) -> Clients:
    return Clients(
        subscription_id="00000000-0000-0000-0000-000000000000",
        cred=object(),
        res=SimpleNamespace(resource_groups=groups.get("resource_groups", Recorder())),
        sql=SimpleNamespace(
            servers=groups.get("servers", Recorder()),
            databases=groups.get("databases", Recorder()),
            firewall_rules=groups.get("firewall_rules", Recorder()),
        ),
        web=SimpleNamespace(
            app_service_plans=groups.get("app_service_plans", Recorder()),
            web_apps=groups.get("web_apps", Recorder()),
        ),
        acr=SimpleNamespace(registries=groups.get("registries", Recorder())),
    )


def test_create_group_maps_response() -> None:
    groups = Recorder(
        create_or_update=SimpleNamespace(name="rg-1", location="eastus", id="/subscriptions/s/rg-1")
    )
    client = AzureProvisioningClient(_clients(resource_groups=groups))
    attrs = asyncio.run(client.create_group(name="rg-1", location="eastus", tags={"a": "b"}))
    assert attrs == {"name": "rg-1", "location": "eastus", "id": "/subscriptions/s/rg-1"}
    assert groups.calls[0][1] == ("rg-1", {"location": "eastus", "tags": {"a": "b"}})


def test_invalid_name_never_reaches_azure() -> None:
    groups = Recorder()
    client = AzureProvisioningClient(_clients(resource_groups=groups))
    with pytest.raises(AzureOperationError) as exc_info:
        asyncio.run(client.create_group(name="bad name!", location="eastus", tags={}))
    assert exc_info.value.code == "validation_error"
    assert groups.calls == []


def test_server_waits_on_poller() -> None:
    server = SimpleNamespace(
        name="poc-sql-1", id="/servers/poc-sql-1", fully_qualified_domain_name="poc-sql-1.database.windows.net"
    )
    servers = Recorder(begin_create_or_update=DummyPoller(server))
    client = AzureProvisioningClient(_clients(servers=servers))
    attrs = asyncio.run(
        client.create_server(
            resource_group="rg-1",
            name="poc-sql-1",
            location="eastus",
            admin_user="sqladmin",
            admin_password="pw",
            tags={},
        )
    )
    assert attrs["fqdn"] == "poc-sql-1.database.windows.net"
    assert attrs["admin_user"] == "sqladmin"
    body = servers.calls[0][1][2]
    assert body["administrator_login_password"] == "pw"


def test_sdk_error_is_classified() -> None:
    groups = Recorder(create_or_update=ClientAuthenticationError("denied"))
    client = AzureProvisioningClient(_clients(resource_groups=groups))
    with pytest.raises(AzureOperationError) as exc_info:
        asyncio.run(client.create_group(name="rg-1", location="eastus", tags={}))
    assert exc_info.value.code == "auth_error"
    assert not exc_info.value.retryable


def test_app_instance_uses_linux_runtime() -> None:
    plans = Recorder(get=SimpleNamespace(reserved=True, location="eastus", id="/serverfarms/plan-1"))
    apps = Recorder(
        begin_create_or_update=DummyPoller(
            SimpleNamespace(name="app-1", id="/sites/app-1", default_host_name="app-1.azurewebsites.net")
        )
    )
    client = AzureProvisioningClient(_clients(app_service_plans=plans, web_apps=apps))
    attrs = asyncio.run(
        client.create_app_instance(
            resource_group="rg-1", name="app-1", plan="plan-1", runtime="DOTNETCORE:8.0", tags={}
        )
    )
    assert attrs["url"] == "https://app-1.azurewebsites.net"
    site = apps.calls[0][1][2]
    assert site.site_config.linux_fx_version == "DOTNETCORE|8.0"
    assert site.server_farm_id == "/serverfarms/plan-1"


def test_bind_connection_string_merges_settings() -> None:
    apps = Recorder(
        list_application_settings=SimpleNamespace(properties={"EXISTING": "1"}),
        update_application_settings=None,
    )
    client = AzureProvisioningClient(_clients(web_apps=apps))
    attrs = asyncio.run(
        client.bind_connection_string(
            resource_group="rg-1",
            app_names=["app-1", "app-2"],
            connection_string="Server=tcp:x",
            settings={"ASPNETCORE_ENVIRONMENT": "Production"},
        )
    )
    assert attrs == {"connection_string": "Server=tcp:x", "bound_apps": "app-1,app-2"}
    updates = [args for name, args in apps.calls if name == "update_application_settings"]
    assert [u[1] for u in updates] == ["app-1", "app-2"]
    assert updates[0][2].properties == {
        "EXISTING": "1",
        CONNECTION_STRING_SETTING: "Server=tcp:x",
        "ASPNETCORE_ENVIRONMENT": "Production",
    }


def test_enable_cors_keeps_existing_origins() -> None:
    config = SimpleNamespace(cors=SimpleNamespace(allowed_origins=["https://a.example"]))
    apps = Recorder(get_configuration=config, update_configuration=None)
    client = AzureProvisioningClient(_clients(web_apps=apps))
    asyncio.run(
        client.enable_cors(
            resource_group="rg-1", app_names=["app-1"], allowed_origins=["*", "https://a.example"]
        )
    )
    assert config.cors.allowed_origins == ["https://a.example", "*"]


class DummyCredential:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def test_connect_closes_credential_when_subscription_missing(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    credential = DummyCredential()
    monkeypatch.setattr(adapter, "build_async_credential", lambda cfg: credential)

    with pytest.raises(ConfigurationError):
        asyncio.run(AzureProvisioningClient.connect(AzureConfig(), verify=False))
    assert credential.closed
