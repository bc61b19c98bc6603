from __future__ import annotations

from .models import ProvisioningStep, ResourceRecord, ResourceType, RunContext, RunStatus, StepWarning
from .naming import NameGenerator, new_run_seed
from .plan import ProvisioningPlan, new_plan
from .client import ProvisioningClient
from .orchestrator import Orchestrator
from .output import save_artifact, write_artifact

__all__ = [
    "ResourceType",
    "RunStatus",
    "ProvisioningStep",
    "ResourceRecord",
    "StepWarning",
    "RunContext",
    "NameGenerator",
    "new_run_seed",
    "ProvisioningPlan",
    "new_plan",
    "ProvisioningClient",
    "Orchestrator",
    "save_artifact",
    "write_artifact",
]
