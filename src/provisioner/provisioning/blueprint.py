"""The POC deployment: SQL-backed user/product services on App Service."""

from __future__ import annotations

from typing import Any

from provisioner.core.config import DeploymentConfig
from provisioner.provisioning.models import ProvisioningStep, ResourceType, RunContext
from provisioner.provisioning.naming import NameGenerator
from provisioner.provisioning.plan import ProvisioningPlan
from provisioner.tools.azure.tags import standard_tags


def sql_connection_string(fqdn: str, database: str, user: str, password: str) -> str:
    """ADO.NET string as printed by ``az sql db show-connection-string --client ado.net``."""
    return (
        f"Server=tcp:{fqdn},1433;Database={database};User ID={user};"
        f"Password={password};Encrypt=true;Connection Timeout=30;"
    )


def build_reference_plan(
    cfg: DeploymentConfig,
    caller_ip: str | None = None,
    names: NameGenerator | None = None,
) -> ProvisioningPlan:
    region = cfg.region

    def tags(ctx: RunContext) -> dict[str, str]:
        return standard_tags(cfg.tags, ctx.run_seed)

    def group(ctx: RunContext) -> dict[str, Any]:
        return {"name": ctx.name("resource_group"), "location": region, "tags": tags(ctx)}

    def server(ctx: RunContext) -> dict[str, Any]:
        return {
            "resource_group": ctx.name("resource_group"),
            "name": ctx.name("sql_server"),
            "location": region,
            "admin_user": cfg.sql_admin_user,
            "admin_password": cfg.sql_admin_password.get_secret_value(),
            "tags": tags(ctx),
        }

    def database(ctx: RunContext) -> dict[str, Any]:
        return {
            "resource_group": ctx.name("resource_group"),
            "server": ctx.name("sql_server"),
            "name": ctx.name("sql_database"),
            "location": region,
            "sku": cfg.sku_tier,
            "tags": tags(ctx),
        }

    def allow_azure_services(ctx: RunContext) -> dict[str, Any]:
        return {
            "resource_group": ctx.name("resource_group"),
            "server": ctx.name("sql_server"),
            "name": ctx.name("firewall_azure_services"),
            "start_ip": "0.0.0.0",
            "end_ip": "0.0.0.0",
        }

    def allow_caller_ip(ctx: RunContext) -> dict[str, Any]:
        if not caller_ip:
            raise LookupError("could not determine public IP; add the firewall rule manually")
        return {
            "resource_group": ctx.name("resource_group"),
            "server": ctx.name("sql_server"),
            "name": ctx.name("firewall_caller_ip"),
            "start_ip": caller_ip,
            "end_ip": caller_ip,
        }

    def registry(ctx: RunContext) -> dict[str, Any]:
        return {
            "resource_group": ctx.name("resource_group"),
            "name": ctx.name("container_registry"),
            "location": region,
            "sku": cfg.sku_tier,
            "admin_enabled": True,
            "tags": tags(ctx),
        }

    def app_plan(ctx: RunContext) -> dict[str, Any]:
        return {
            "resource_group": ctx.name("resource_group"),
            "name": ctx.name("app_service_plan"),
            "location": region,
            "sku": cfg.app_plan_sku,
            "linux": True,
            "tags": tags(ctx),
        }

    def app_instance(step_id: str):
        def params(ctx: RunContext) -> dict[str, Any]:
            return {
                "resource_group": ctx.name("resource_group"),
                "name": ctx.name(step_id),
                "plan": ctx.name("app_service_plan"),
                "runtime": cfg.app_runtime_version,
                "tags": tags(ctx),
            }

        return params

    def connection_binding(ctx: RunContext) -> dict[str, Any]:
        return {
            "resource_group": ctx.name("resource_group"),
            "app_names": [ctx.name("user_service"), ctx.name("product_service")],
            "connection_string": sql_connection_string(
                ctx.attribute("sql_server", "fqdn"),
                ctx.name("sql_database"),
                cfg.sql_admin_user,
                cfg.sql_admin_password.get_secret_value(),
            ),
            "settings": {"ASPNETCORE_ENVIRONMENT": cfg.aspnetcore_environment},
        }

    def cors(ctx: RunContext) -> dict[str, Any]:
        return {
            "resource_group": ctx.name("resource_group"),
            "app_names": [ctx.name("user_service"), ctx.name("product_service")],
            "allowed_origins": list(cfg.cors_allowed_origins),
        }

    steps = [
        ProvisioningStep(
            id="resource_group",
            resource_type=ResourceType.GROUP,
            description="Creating resource group",
            name_template=cfg.resource_group_label,
            params=group,
            exports={"name": "RESOURCE_GROUP", "location": "LOCATION"},
        ),
        ProvisioningStep(
            id="sql_server",
            resource_type=ResourceType.SERVER,
            description="Creating SQL Server",
            depends_on=frozenset({"resource_group"}),
            name_template=cfg.sql_server_label,
            params=server,
            exports={"name": "SQL_SERVER", "fqdn": "SQL_SERVER_FQDN", "admin_user": "SQL_ADMIN"},
        ),
        ProvisioningStep(
            id="sql_database",
            resource_type=ResourceType.DATABASE,
            description="Creating SQL Database",
            depends_on=frozenset({"sql_server"}),
            name_template=cfg.sql_database_label,
            params=database,
            exports={"name": "SQL_DB"},
        ),
        ProvisioningStep(
            id="firewall_azure_services",
            resource_type=ResourceType.FIREWALL_RULE,
            description="Configuring SQL Server firewall (Azure services)",
            depends_on=frozenset({"sql_server"}),
            name_template=cfg.azure_services_rule_label,
            params=allow_azure_services,
        ),
        ProvisioningStep(
            id="firewall_caller_ip",
            resource_type=ResourceType.FIREWALL_RULE,
            description="Adding firewall rule for your public IP",
            depends_on=frozenset({"sql_server"}),
            required=False,
            name_template=cfg.caller_ip_rule_label,
            params=allow_caller_ip,
        ),
        ProvisioningStep(
            id="container_registry",
            resource_type=ResourceType.REGISTRY,
            description="Creating Azure Container Registry",
            depends_on=frozenset({"resource_group"}),
            name_template=cfg.registry_label,
            params=registry,
            exports={"name": "ACR_NAME", "login_server": "ACR_LOGIN_SERVER"},
        ),
        ProvisioningStep(
            id="app_service_plan",
            resource_type=ResourceType.PLAN,
            description="Creating App Service Plan",
            depends_on=frozenset({"resource_group"}),
            name_template=cfg.app_plan_label,
            params=app_plan,
            exports={"name": "APP_SERVICE_PLAN"},
        ),
        ProvisioningStep(
            id="user_service",
            resource_type=ResourceType.APP_INSTANCE,
            description="Creating App Service (user service)",
            depends_on=frozenset({"app_service_plan"}),
            name_template=cfg.user_service_label,
            params=app_instance("user_service"),
            exports={"name": "USER_SERVICE_NAME", "url": "USER_SERVICE_URL"},
        ),
        ProvisioningStep(
            id="product_service",
            resource_type=ResourceType.APP_INSTANCE,
            description="Creating App Service (product service)",
            depends_on=frozenset({"app_service_plan"}),
            name_template=cfg.product_service_label,
            params=app_instance("product_service"),
            exports={"name": "PRODUCT_SERVICE_NAME", "url": "PRODUCT_SERVICE_URL"},
        ),
        ProvisioningStep(
            id="connection_binding",
            resource_type=ResourceType.CONNECTION_BINDING,
            description="Configuring connection strings and app settings",
            depends_on=frozenset({"sql_database", "user_service", "product_service"}),
            name_template=cfg.connection_binding_label,
            params=connection_binding,
            exports={"connection_string": "CONNECTION_STRING"},
        ),
        ProvisioningStep(
            id="cors",
            resource_type=ResourceType.CORS_RULE,
            description="Enabling CORS",
            depends_on=frozenset({"user_service", "product_service"}),
            name_template=cfg.cors_label,
            params=cors,
            exports={"allowed_origins": "CORS_ALLOWED_ORIGINS"},
        ),
    ]
    return ProvisioningPlan(steps, names)
