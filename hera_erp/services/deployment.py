"""
ERP module templates and deployment plans.

Templates are core_entities owned by the system organization (or by a tenant
for custom modules). Deploying one creates a deployed_erp_module entity in the
tenant plus, optionally, chart-of-account and workflow entities taken from
the patterns below.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from hera_erp import SYSTEM_ORGANIZATION_ID
from hera_erp.services.universal import to_float

TEMPLATE_ENTITY_TYPES = ("erp_module_template", "custom_module_template")
DEPLOYED_ENTITY_TYPE = "deployed_erp_module"
DEPLOYED_SUFFIX = "-DEPLOYED"
DEPENDENCY_RELATIONSHIP = "module_depends_on"


@dataclass(frozen=True)
class AccountPattern:
    code: str
    name: str
    account_type: str


@dataclass(frozen=True)
class WorkflowPattern:
    code: str
    name: str
    steps: tuple[str, ...]


ACCOUNT_PATTERNS: dict[str, tuple[AccountPattern, ...]] = {
    "SYS-GL-CORE": (
        AccountPattern("1001000", "Cash - Operating Account", "ASSET"),
        AccountPattern("2001000", "Accounts Payable", "LIABILITY"),
        AccountPattern("3001000", "Owner's Equity", "EQUITY"),
        AccountPattern("4001000", "Revenue - General", "REVENUE"),
    ),
    "SYS-AR-MGMT": (
        AccountPattern("1002000", "Accounts Receivable", "ASSET"),
        AccountPattern("1002100", "Allowance for Doubtful Accounts", "ASSET"),
    ),
    "SYS-INVENTORY": (
        AccountPattern("1003000", "Inventory - Raw Materials", "ASSET"),
        AccountPattern("1003100", "Inventory - Work in Process", "ASSET"),
        AccountPattern("1003200", "Inventory - Finished Goods", "ASSET"),
        AccountPattern("5001000", "Cost of Goods Sold", "COST_OF_SALES"),
    ),
}

WORKFLOW_PATTERNS: dict[str, tuple[WorkflowPattern, ...]] = {
    "SYS-PROCURE": (
        WorkflowPattern(
            "PROC-APPROVAL",
            "Purchase Order Approval Workflow",
            ("request", "review", "approve", "purchase"),
        ),
    ),
    "SYS-AR-MGMT": (
        WorkflowPattern(
            "AR-COLLECTION",
            "Accounts Receivable Collection Workflow",
            ("invoice", "follow_up", "collection", "write_off"),
        ),
    ),
    "SYS-HR-CORE": (
        WorkflowPattern(
            "HR-ONBOARDING",
            "Employee Onboarding Workflow",
            ("application", "background_check", "offer", "onboarding"),
        ),
    ),
}


def deployed_code(template_code: Optional[str]) -> str:
    return f"{template_code}{DEPLOYED_SUFFIX}"


def template_code_of(deployed: str) -> str:
    return deployed[: -len(DEPLOYED_SUFFIX)] if deployed.endswith(DEPLOYED_SUFFIX) else deployed


def deployment_number(organization_id: UUID, moment: datetime) -> str:
    return f"DEPLOY-{str(organization_id)[:8]}-{int(moment.timestamp() * 1000)}"


def account_plan(template_code: Optional[str], existing_codes: set[str]) -> list[AccountPattern]:
    """Accounts to create for a module, skipping codes the tenant already has."""
    return [
        account
        for account in ACCOUNT_PATTERNS.get(template_code or "", ())
        if account.code not in existing_codes
    ]


def workflow_plan(template_code: Optional[str]) -> list[WorkflowPattern]:
    return list(WORKFLOW_PATTERNS.get(template_code or "", ()))


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() == "true"


def describe_module(
    module: Any,
    fields: dict[str, Any],
    dependencies: list[str],
    deployed_template_codes: set[str],
) -> dict:
    """
    Listing view of a module template.

    Args:
        module: CoreEntity-like object (id, entity_code, entity_name,
            entity_type, organization_id)
        fields: decoded dynamic fields of the template
        dependencies: ids of modules this one depends on
        deployed_template_codes: template codes the tenant has deployed
    """
    return {
        "id": str(module.id),
        "entity_code": module.entity_code,
        "entity_name": module.entity_name,
        "entity_type": module.entity_type,
        "organization_id": str(module.organization_id),
        "description": fields.get("description"),
        "module_category": fields.get("module_category") or "general",
        "functional_area": fields.get("functional_area") or "operations",
        "is_core": _flag(fields.get("is_core")) or module.organization_id == SYSTEM_ORGANIZATION_ID,
        "is_deployed": module.entity_code in deployed_template_codes,
        "deployment_time_minutes": int(to_float(fields.get("deployment_time_minutes"), 15)),
        "dependencies": dependencies,
        "configuration": {
            "requires_setup": _flag(fields.get("requires_setup")),
            "has_ui_components": _flag(fields.get("has_ui_components")),
            "data_migration_required": _flag(fields.get("data_migration_required")),
        },
        "fields": fields,
    }
