import pytest

from provisioner.core.config import DeploymentConfig
from provisioner.core.exceptions import InvalidNameError, InvalidPlanError
from provisioner.provisioning.blueprint import build_reference_plan
from provisioner.provisioning.models import ProvisioningStep, ResourceType
from provisioner.provisioning.naming import NameGenerator
from provisioner.provisioning.plan import ProvisioningPlan, new_plan


def _group(step_id: str = "rg") -> ProvisioningStep:
    return ProvisioningStep(step_id, ResourceType.GROUP, name_template="rg")


def test_reference_plan_order() -> None:
    plan = build_reference_plan(DeploymentConfig(), "203.0.113.5")
    assert [s.id for s in plan] == [
        "resource_group",
        "sql_server",
        "sql_database",
        "firewall_azure_services",
        "firewall_caller_ip",
        "container_registry",
        "app_service_plan",
        "user_service",
        "product_service",
        "connection_binding",
        "cors",
    ]
    assert not plan.step("firewall_caller_ip").required
    assert all(s.required for s in plan if s.id != "firewall_caller_ip")


def test_resolve_names_uses_run_seed() -> None:
    plan = build_reference_plan(DeploymentConfig())
    names = plan.resolve_names(1234567890123, NameGenerator())
    assert names["resource_group"] == "poc-deployment-rg-1234567890123"
    assert names["container_registry"] == "pocacr1234567890123"
    assert names["firewall_azure_services"] == "AllowAzureServices-1234567890123"
    assert names["connection_binding"] == "poc-connection-binding-1234567890123"


def test_empty_plan_is_rejected() -> None:
    with pytest.raises(InvalidPlanError):
        new_plan([])


def test_first_step_must_be_group() -> None:
    with pytest.raises(InvalidPlanError):
        new_plan([ProvisioningStep("srv", ResourceType.SERVER, name_template="srv")])


def test_duplicate_ids_are_rejected() -> None:
    steps = [
        _group(),
        ProvisioningStep("a", ResourceType.PLAN, depends_on={"rg"}),
        ProvisioningStep("a", ResourceType.PLAN, depends_on={"rg"}),
    ]
    with pytest.raises(InvalidPlanError, match="duplicate"):
        new_plan(steps)


def test_forward_dependency_is_rejected() -> None:
    steps = [
        _group(),
        ProvisioningStep("app", ResourceType.APP_INSTANCE, depends_on={"plan"}),
        ProvisioningStep("plan", ResourceType.PLAN, depends_on={"rg"}),
    ]
    with pytest.raises(InvalidPlanError, match="later in the plan"):
        new_plan(steps)


def test_undeclared_dependency_is_rejected() -> None:
    steps = [_group(), ProvisioningStep("plan", ResourceType.PLAN, depends_on={"nope"})]
    with pytest.raises(InvalidPlanError, match="undeclared"):
        new_plan(steps)


def test_self_dependency_is_rejected() -> None:
    steps = [_group(), ProvisioningStep("plan", ResourceType.PLAN, depends_on={"plan"})]
    with pytest.raises(InvalidPlanError, match="itself"):
        new_plan(steps)


def test_step_must_reach_group() -> None:
    steps = [_group(), ProvisioningStep("plan", ResourceType.PLAN)]
    with pytest.raises(InvalidPlanError, match="transitively"):
        new_plan(steps)


def test_second_group_is_rejected() -> None:
    steps = [_group(), ProvisioningStep("rg2", ResourceType.GROUP, depends_on={"rg"})]
    with pytest.raises(InvalidPlanError):
        new_plan(steps)


def test_conflicting_exports_are_rejected() -> None:
    steps = [
        ProvisioningStep("rg", ResourceType.GROUP, exports={"name": "NAME"}),
        ProvisioningStep("plan", ResourceType.PLAN, depends_on={"rg"}, exports={"name": "NAME"}),
    ]
    with pytest.raises(InvalidPlanError, match="NAME"):
        new_plan(steps)


def test_overlong_label_fails_at_construction() -> None:
    cfg = DeploymentConfig(user_service_label="u" * 50)
    with pytest.raises(InvalidNameError):
        build_reference_plan(cfg)


def test_plan_is_a_sequence() -> None:
    plan = ProvisioningPlan([_group()])
    assert len(plan) == 1
    assert plan[0].id == "rg"
    assert plan.steps == (plan[0],)
    with pytest.raises(KeyError):
        plan.step("missing")


def test_header_keys_are_reserved() -> None:
    steps = [ProvisioningStep("rg", ResourceType.GROUP, exports={"name": "status"})]
    with pytest.raises(InvalidPlanError, match="reserved"):
        new_plan(steps)
