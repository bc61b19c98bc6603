from __future__ import annotations

from .adapter import AzureProvisioningClient
from .clients import AzureOperationError

__all__ = ["AzureProvisioningClient", "AzureOperationError"]
