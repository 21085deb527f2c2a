"""
Unit tests for module templates and deployment plans.
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from hera_erp import SYSTEM_ORGANIZATION_ID
from hera_erp.services.deployment import (
    ACCOUNT_PATTERNS,
    account_plan,
    deployed_code,
    deployment_number,
    describe_module,
    template_code_of,
    workflow_plan,
)

pytestmark = pytest.mark.unit


def _module(code="SYS-GL-CORE", organization_id=SYSTEM_ORGANIZATION_ID):
    return SimpleNamespace(
        id=uuid4(),
        entity_code=code,
        entity_name="General Ledger",
        entity_type="erp_module_template",
        organization_id=organization_id,
    )


class TestCodes:
    def test_deployed_code_round_trip(self):
        assert deployed_code("SYS-GL-CORE") == "SYS-GL-CORE-DEPLOYED"
        assert template_code_of("SYS-GL-CORE-DEPLOYED") == "SYS-GL-CORE"
        assert template_code_of("SYS-GL-CORE") == "SYS-GL-CORE"

    def test_deployment_number(self):
        org_id = UUID("12345678-0000-0000-0000-000000000000")
        moment = datetime(2026, 10, 19, tzinfo=timezone.utc)

        number = deployment_number(org_id, moment)

        assert number == f"DEPLOY-12345678-{int(moment.timestamp() * 1000)}"


class TestPlans:
    def test_account_plan_skips_existing_codes(self):
        plan = account_plan("SYS-GL-CORE", {"1001000", "4001000"})

        assert [a.code for a in plan] == ["2001000", "3001000"]

    def test_account_plan_for_module_without_pattern(self):
        assert account_plan("SYS-HR-CORE", set()) == []
        assert account_plan(None, set()) == []

    def test_account_patterns_are_valid_codes(self):
        for patterns in ACCOUNT_PATTERNS.values():
            for pattern in patterns:
                assert len(pattern.code) == 7
                assert pattern.code[0] != "0"

    def test_workflow_plan(self):
        (workflow,) = workflow_plan("SYS-PROCURE")

        assert workflow.code == "PROC-APPROVAL"
        assert workflow.steps == ("request", "review", "approve", "purchase")
        assert workflow_plan("SYS-GL-CORE") == []


class TestDescribeModule:
    def test_system_module_is_core(self):
        module = _module()

        described = describe_module(module, {"module_category": "finance"}, [], set())

        assert described["id"] == str(module.id)
        assert described["is_core"] is True
        assert described["is_deployed"] is False
        assert described["module_category"] == "finance"
        assert described["functional_area"] == "operations"
        assert described["deployment_time_minutes"] == 15

    def test_custom_module_flags_from_fields(self):
        module = _module(code="CUSTOM-KDS", organization_id=uuid4())
        fields = {
            "is_core": "false",
            "requires_setup": "true",
            "has_ui_components": True,
            "deployment_time_minutes": 45,
        }

        described = describe_module(module, fields, ["dep-1"], {"CUSTOM-KDS"})

        assert described["is_core"] is False
        assert described["is_deployed"] is True
        assert described["dependencies"] == ["dep-1"]
        assert described["deployment_time_minutes"] == 45
        assert described["configuration"] == {
            "requires_setup": True,
            "has_ui_components": True,
            "data_migration_required": False,
        }
