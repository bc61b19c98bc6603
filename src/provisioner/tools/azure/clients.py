from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.mgmt.containerregistry.aio import ContainerRegistryManagementClient
from azure.mgmt.resource.resources.aio import ResourceManagementClient
from azure.mgmt.sql.aio import SqlManagementClient
from azure.mgmt.web.aio import WebSiteManagementClient

from provisioner.core.azure_auth import build_async_credential
from provisioner.core.config import AzureConfig
from provisioner.core.exceptions import ConfigurationError
from provisioner.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AzureOperationError(Exception):
    code: str
    message: str
    status_code: int | None
    retryable: bool

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


@dataclass(frozen=True)
class Clients:
    subscription_id: str
    cred: AsyncTokenCredential
    res: ResourceManagementClient
    sql: SqlManagementClient
    web: WebSiteManagementClient
    acr: ContainerRegistryManagementClient

    async def run(
        self, fn: Callable[..., Any] | Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
    ) -> Any:
        res = fn(*args, **kwargs)
        if inspect.isawaitable(res):
            return await res
        return res

    async def close(self) -> None:
        for attr in ("res", "sql", "web", "acr"):
            close = getattr(getattr(self, attr, None), "close", None)
            if not callable(close):
                continue
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.debug("azure_clients.close_error", client=attr, error=str(e))
        cclose = getattr(self.cred, "close", None)
        if callable(cclose):
            try:
                await cclose()
            except Exception as e:
                logger.debug("azure_clients.credential_close_error", error=str(e))


def build_clients(cfg: AzureConfig, credential: AsyncTokenCredential | None = None) -> Clients:
    sid = cfg.subscription_id
    if not sid:
        raise ConfigurationError(
            "subscription_id missing; set AZURE__SUBSCRIPTION_ID",
            details={"auth_mode": cfg.auth_mode},
        )
    cred = credential or build_async_credential(cfg)
    base_url = cfg.resource_manager_endpoint
    logger.debug("azure_clients.build", subscription_id=sid)
    return Clients(
        subscription_id=sid,
        cred=cred,
        res=ResourceManagementClient(cred, sid, base_url=base_url),
        sql=SqlManagementClient(cred, sid, base_url=base_url),
        web=WebSiteManagementClient(cred, sid, base_url=base_url),
        acr=ContainerRegistryManagementClient(cred, sid, base_url=base_url),
    )


def _http_status(e: BaseException) -> int | None:
    if isinstance(e, HttpResponseError):
        sc = getattr(e, "status_code", None)
        if sc is not None:
            return int(sc)
        resp = getattr(e, "response", None)
        if resp is not None:
            sc = getattr(resp, "status_code", None)
            if sc is not None:
                return int(sc)
    return None


def classify(e: BaseException) -> tuple[bool, str, int | None]:
    if isinstance(e, ClientAuthenticationError):
        return False, "auth_error", _http_status(e)
    if isinstance(e, ServiceRequestError | ServiceResponseError | TimeoutError | OSError):
        return True, "transient_io", _http_status(e)
    if isinstance(e, HttpResponseError):
        sc = _http_status(e)
        if sc in (408, 429) or (sc is not None and 500 <= sc <= 599):
            return True, f"http_{sc}", sc
        return False, f"http_{sc}" if sc is not None else "http_error", sc
    if isinstance(e, AzureError):
        return False, "azure_error", _http_status(e)
    return False, "unknown_error", _http_status(e)


def _is_poller(obj: Any) -> bool:
    return hasattr(obj, "result") and hasattr(obj, "status")


async def call_azure(
    clients: Clients,
    fn: Callable[..., Any] | Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Invoke an SDK operation, waiting on its poller if it returns one.

    SDK errors come back as ``AzureOperationError``; nothing is retried here.
    """
    try:
        result = await clients.run(fn, *args, **kwargs)
        if _is_poller(result):
            result = await clients.run(result.result)
        return result
    except AzureError as e:
        retryable, code, sc = classify(e)
        logger.error(
            "azure_clients.operation_error",
            operation=getattr(fn, "__name__", type(fn).__name__),
            error_type=type(e).__name__,
            error_code=code,
            http_status=sc,
        )
        message = getattr(e, "message", None) or str(e)
        raise AzureOperationError(
            code=code, message=message, status_code=sc, retryable=retryable
        ) from e
