from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LOCATIONS = ["eastus", "eastus2", "westus", "westeurope", "northeurope", "uksouth"]

LOCATION_ALIASES = {
    "east us": "eastus",
    "east us 2": "eastus2",
    "west us": "westus",
    "west europe": "westeurope",
    "north europe": "northeurope",
    "uk south": "uksouth",
}


def normalize_location(loc: str) -> str:
    loc_lower = loc.lower().strip()
    return LOCATION_ALIASES.get(loc_lower, loc_lower)


class DeploymentConfig(BaseModel):
    """Inputs of the reference deployment; defaults reproduce the POC script."""

    resource_group_label: str = "poc-deployment-rg"
    region: str = "eastus"
    sql_admin_user: str = "sqladmin"
    sql_admin_password: SecretStr = SecretStr("P@ssw0rd123!")
    sku_tier: str = "Basic"
    app_runtime_version: str = "DOTNETCORE:8.0"
    app_plan_sku: str = "B1"

    sql_server_label: str = "poc-sql-server"
    sql_database_label: str = "poc-db"
    registry_label: str = "pocacr"
    app_plan_label: str = "poc-app-plan"
    user_service_label: str = "poc-user-service"
    product_service_label: str = "poc-product-service"
    azure_services_rule_label: str = "AllowAzureServices"
    caller_ip_rule_label: str = "AllowMyIP"
    connection_binding_label: str = "poc-connection-binding"
    cors_label: str = "poc-cors"

    cors_allowed_origins: list[str] = Field(default_factory=lambda: ["*"])
    aspnetcore_environment: str = "Production"
    allowed_locations: list[str] = Field(default_factory=lambda: list(DEFAULT_LOCATIONS))
    tags: dict[str, str] = Field(default_factory=lambda: {"workload": "poc"})

    @field_validator("allowed_locations", mode="before")
    @classmethod
    def _normalize_locations(cls, v: Any) -> list[str]:
        if not v:
            return list(DEFAULT_LOCATIONS)
        return [str(x).lower().strip() for x in v]

    @field_validator("region", mode="before")
    @classmethod
    def _normalize_region(cls, v: Any) -> str:
        return normalize_location(str(v)) if v else "eastus"

    @field_validator("sql_admin_user")
    @classmethod
    def _check_admin_user(cls, v: str) -> str:
        if not v or v.lower() in {"admin", "administrator", "sa", "root"}:
            raise ValueError("sql_admin_user must be set and must not be a reserved login")
        return v

    @model_validator(mode="after")
    def _validate_region(self) -> DeploymentConfig:
        if self.region not in set(self.allowed_locations):
            raise ValueError(
                f"region {self.region!r} must be one of allowed_locations: "
                f"{', '.join(self.allowed_locations)}"
            )
        if not self.cors_allowed_origins:
            raise ValueError("cors_allowed_origins must contain at least one origin")
        return self


class AzureConfig(BaseModel):
    subscription_id: str | None = Field(default=None, pattern="^[a-f0-9-]{36}$")
    tenant_id: str | None = Field(default=None, pattern="^[a-f0-9-]{36}$")
    client_id: str | None = None
    client_secret: SecretStr | None = None
    auth_mode: Literal[
        "azure_cli",
        "service_principal",
        "managed_identity",
        "environment",
        "default",
    ] = "azure_cli"
    authority_host: str = "https://login.microsoftonline.com"
    resource_manager_endpoint: str = "https://management.azure.com/"


class ObservabilityConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    public_ip_url: str = "https://ifconfig.me/ip"
    public_ip_timeout_seconds: float = Field(default=5.0, gt=0)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "Azure POC Provisioner"
    output_file: Path = Path("azure-vars.txt")

    deployment: DeploymentConfig = Field(default_factory=DeploymentConfig)
    azure: AzureConfig = Field(default_factory=AzureConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def export_safe_config(self) -> dict[str, Any]:
        cfg = self.model_dump(mode="json")
        redactions = [
            ["deployment", "sql_admin_password"],
            ["azure", "client_secret"],
        ]
        for path in redactions:
            current = cfg
            for key in path[:-1]:
                current = current.get(key, {})
            if path[-1] in current:
                current[path[-1]] = "***REDACTED***"
        return cfg


@lru_cache
def get_settings() -> Settings:
    return Settings()
