from __future__ import annotations

import time

from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import CredentialUnavailableError
from azure.identity.aio import AzureCliCredential as AzureCliCredentialAsync
from azure.identity.aio import ClientSecretCredential as ClientSecretCredentialAsync
from azure.identity.aio import DefaultAzureCredential as DefaultAzureCredentialAsync
from azure.identity.aio import EnvironmentCredential as EnvironmentCredentialAsync
from azure.identity.aio import ManagedIdentityCredential as ManagedIdentityCredentialAsync

from provisioner.core.config import AzureConfig
from provisioner.core.exceptions import ConfigurationError, CredentialError
from provisioner.core.logging import get_logger

logger = get_logger(__name__)

_ARM_SCOPE = "https://management.azure.com/.default"


def arm_scope(cfg: AzureConfig) -> str:
    endpoint = cfg.resource_manager_endpoint.rstrip("/")
    return f"{endpoint}/.default" if endpoint else _ARM_SCOPE


def build_async_credential(cfg: AzureConfig) -> AsyncTokenCredential:
    authority = cfg.authority_host.rstrip("/")
    logger.debug("build_async_credential.start", auth_mode=cfg.auth_mode, authority=authority)
    if cfg.auth_mode == "service_principal":
        if not (cfg.tenant_id and cfg.client_id and cfg.client_secret):
            raise ConfigurationError(
                "tenant_id, client_id and client_secret are required for service_principal",
                details={"auth_mode": cfg.auth_mode},
            )
        return ClientSecretCredentialAsync(
            tenant_id=cfg.tenant_id,
            client_id=cfg.client_id,
            client_secret=cfg.client_secret.get_secret_value(),
            authority=authority,
        )
    if cfg.auth_mode == "managed_identity":
        return ManagedIdentityCredentialAsync(client_id=cfg.client_id)
    if cfg.auth_mode == "environment":
        return EnvironmentCredentialAsync(authority=authority)
    if cfg.auth_mode == "azure_cli":
        return AzureCliCredentialAsync(tenant_id=cfg.tenant_id or "")
    return DefaultAzureCredentialAsync(authority=authority)


async def verify_credential(credential: AsyncTokenCredential, cfg: AzureConfig) -> None:
    """Fail fast when no management-plane token can be obtained."""
    start = time.perf_counter()
    try:
        await credential.get_token(arm_scope(cfg))
    except (ClientAuthenticationError, CredentialUnavailableError) as exc:
        hint = "Please run: az login" if cfg.auth_mode == "azure_cli" else "Check credentials"
        raise CredentialError(
            f"Not logged in to Azure ({cfg.auth_mode}). {hint}",
            details={"auth_mode": cfg.auth_mode},
            cause=exc,
        ) from exc
    logger.debug(
        "verify_credential.end",
        auth_mode=cfg.auth_mode,
        duration_ms=round((time.perf_counter() - start) * 1000.0, 1),
    )
