import asyncio

import pytest

from provisioner.core.config import DeploymentConfig
from provisioner.core.exceptions import RunCancelledError, StepFailure
from provisioner.provisioning.blueprint import build_reference_plan
from provisioner.provisioning.fake import FakeProvisioningClient
from provisioner.provisioning.models import ProvisioningStep, ResourceType, RunStatus
from provisioner.provisioning.orchestrator import Orchestrator
from provisioner.provisioning.output import artifact_pairs
from provisioner.provisioning.plan import new_plan

SEED = 1700000000000
CALLER_IP = "203.0.113.7"


def _run(client, plan, seed=SEED, cancel=None):
    lines: list[str] = []
    ctx = asyncio.run(Orchestrator(client, echo=lines.append).run(plan, run_seed=seed, cancel=cancel))
    return ctx, lines


def test_full_run_completes() -> None:
    client = FakeProvisioningClient()
    ctx, lines = _run(client, build_reference_plan(DeploymentConfig(), CALLER_IP))

    assert ctx.status is RunStatus.COMPLETED
    assert len(ctx.records) == 11
    assert not ctx.warnings
    assert lines[0] == "[1/11] Creating resource group... done"
    keys = dict(artifact_pairs(ctx))
    assert keys["STATUS"] == "Completed"
    assert keys["USER_SERVICE_URL"] == f"https://poc-user-service-{SEED}.azurewebsites.net"
    assert keys["PRODUCT_SERVICE_URL"] == f"https://poc-product-service-{SEED}.azurewebsites.net"
    assert f"poc-sql-server-{SEED}.database.windows.net" in keys["CONNECTION_STRING"]
    assert f"Database=poc-db-{SEED}" in keys["CONNECTION_STRING"]


def test_steps_run_in_plan_order() -> None:
    client = FakeProvisioningClient()
    _run(client, build_reference_plan(DeploymentConfig(), CALLER_IP))
    assert [c.method for c in client.calls] == [
        "create_group",
        "create_server",
        "create_database",
        "add_firewall_rule",
        "add_firewall_rule",
        "create_registry",
        "create_plan",
        "create_app_instance",
        "create_app_instance",
        "bind_connection_string",
        "enable_cors",
    ]


def test_later_steps_see_earlier_names() -> None:
    client = FakeProvisioningClient()
    _run(client, build_reference_plan(DeploymentConfig(), CALLER_IP))
    (group,) = client.called("create_group")
    assert group["tags"] == {"provisioned-by": "poc-provisioner", "run-seed": str(SEED), "workload": "poc"}
    (db,) = client.called("create_database")
    assert db["resource_group"] == f"poc-deployment-rg-{SEED}"
    assert db["server"] == f"poc-sql-server-{SEED}"
    binding = client.called("bind_connection_string")[0]
    assert binding["app_names"] == [f"poc-user-service-{SEED}", f"poc-product-service-{SEED}"]
    assert binding["settings"] == {"ASPNETCORE_ENVIRONMENT": "Production"}


def test_required_failure_aborts_immediately() -> None:
    client = FakeProvisioningClient(fail_on=["create_database"])
    ctx, lines = _run(client, build_reference_plan(DeploymentConfig(), CALLER_IP))

    assert ctx.status is RunStatus.ABORTED
    assert [r.step_id for r in ctx.records] == ["resource_group", "sql_server"]
    assert isinstance(ctx.failure, StepFailure)
    assert ctx.failure.step_id == "sql_database"
    assert [c.method for c in client.calls][-1] == "create_database"
    assert lines[-1] == "[3/11] Creating SQL Database... failed"
    pairs = dict(artifact_pairs(ctx))
    assert pairs["STATUS"] == "Aborted"
    assert pairs["FAILED_STEP"] == "sql_database"
    assert pairs["SQL_SERVER"] == f"poc-sql-server-{SEED}"
    assert "SQL_DB" not in pairs
    with pytest.raises(StepFailure):
        ctx.raise_for_status()


def test_optional_failure_is_a_warning() -> None:
    client = FakeProvisioningClient(fail_on=["AllowMyIP"])
    ctx, _ = _run(client, build_reference_plan(DeploymentConfig(), CALLER_IP))

    assert ctx.status is RunStatus.COMPLETED
    assert len(ctx.records) == 10
    assert not ctx.has_record("firewall_caller_ip")
    assert [w.step_id for w in ctx.warnings] == ["firewall_caller_ip"]


def test_missing_caller_ip_is_a_warning() -> None:
    client = FakeProvisioningClient()
    ctx, _ = _run(client, build_reference_plan(DeploymentConfig(), None))

    assert ctx.status is RunStatus.COMPLETED
    assert len(ctx.records) == 10
    assert "public IP" in ctx.warnings[0].cause
    assert len(client.called("add_firewall_rule")) == 1


def test_runs_with_different_seeds_share_no_names() -> None:
    plan = build_reference_plan(DeploymentConfig(), CALLER_IP)
    first, _ = _run(FakeProvisioningClient(), plan, seed=SEED)
    second, _ = _run(FakeProvisioningClient(), plan, seed=SEED + 1)

    assert len(first.records) == len(second.records) == 11
    for resource_type in ResourceType:
        a = {r.name for r in first.records if r.resource_type is resource_type}
        b = {r.name for r in second.records if r.resource_type is resource_type}
        assert a.isdisjoint(b), resource_type
    assert first.record("firewall_caller_ip").name == f"AllowMyIP-{SEED}"
    assert first.record("cors").name == f"poc-cors-{SEED}"


def test_cancel_before_first_step() -> None:
    cancel = asyncio.Event()
    cancel.set()
    client = FakeProvisioningClient()
    ctx, lines = _run(client, build_reference_plan(DeploymentConfig(), CALLER_IP), cancel=cancel)

    assert ctx.status is RunStatus.ABORTED
    assert isinstance(ctx.failure, RunCancelledError)
    assert ctx.records == []
    assert client.calls == []
    assert lines == ["[1/11] Creating resource group... cancelled"]


def test_cancel_between_steps() -> None:
    cancel = asyncio.Event()
    client = FakeProvisioningClient()

    def echo(line: str) -> None:
        if line.startswith("[2/"):
            cancel.set()

    plan = build_reference_plan(DeploymentConfig(), CALLER_IP)
    ctx = asyncio.run(Orchestrator(client, echo=echo).run(plan, run_seed=SEED, cancel=cancel))
    assert ctx.status is RunStatus.ABORTED
    assert [r.step_id for r in ctx.records] == ["resource_group", "sql_server"]
    assert ctx.failure.step_id == "sql_database"


def _plan_with_optional_parent(child_required: bool):
    return new_plan(
        [
            ProvisioningStep(
                "rg",
                ResourceType.GROUP,
                name_template="rg",
                params=lambda ctx: {"name": ctx.name("rg"), "location": "eastus", "tags": {}},
            ),
            ProvisioningStep(
                "plan",
                ResourceType.PLAN,
                depends_on={"rg"},
                required=False,
                name_template="plan",
                params=lambda ctx: {
                    "resource_group": ctx.name("rg"),
                    "name": ctx.name("plan"),
                    "location": "eastus",
                    "sku": "B1",
                    "linux": True,
                    "tags": {},
                },
            ),
            ProvisioningStep(
                "app",
                ResourceType.APP_INSTANCE,
                depends_on={"plan"},
                required=child_required,
                name_template="app",
                params=lambda ctx: {
                    "resource_group": ctx.name("rg"),
                    "name": ctx.name("app"),
                    "plan": ctx.name("plan"),
                    "runtime": "DOTNETCORE:8.0",
                    "tags": {},
                },
            ),
        ]
    )


def test_optional_dependent_of_failed_step_is_skipped() -> None:
    client = FakeProvisioningClient(fail_on=["create_plan"])
    ctx, lines = _run(client, _plan_with_optional_parent(child_required=False))

    assert ctx.status is RunStatus.COMPLETED
    assert [r.step_id for r in ctx.records] == ["rg"]
    assert [w.step_id for w in ctx.warnings] == ["plan", "app"]
    assert lines[-1].endswith("skipped")
    assert client.called("create_app_instance") == []


def test_required_dependent_of_failed_step_aborts() -> None:
    client = FakeProvisioningClient(fail_on=["create_plan"])
    ctx, _ = _run(client, _plan_with_optional_parent(child_required=True))

    assert ctx.status is RunStatus.ABORTED
    assert ctx.failure.step_id == "app"
    assert "plan" in ctx.failure.reason


def test_group_failure_leaves_no_records() -> None:
    client = FakeProvisioningClient(fail_on=["create_group"])
    ctx, _ = _run(client, build_reference_plan(DeploymentConfig(), CALLER_IP))
    assert ctx.status is RunStatus.ABORTED
    assert ctx.records == []
    assert dict(artifact_pairs(ctx))["FAILED_STEP"] == "resource_group"
