"""
Tests for the Red Zone alert, check and field catalog endpoints.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer
from app.models.red_zone import RedZoneRule
from app.services.red_zone.lifecycle import AlertLifecycleManager
from tests.factories import ConditionFactory, CustomerFactory, RedZoneRuleFactory, condition_tree

ALERTS_PREFIX = "/api/v2/red-zone/alerts"
RED_ZONE_PREFIX = "/api/v2/red-zone"


@pytest_asyncio.fixture
async def open_alert(test_db: AsyncSession, customer):
    """Open alert on the fixture customer; returns its id."""
    alert = await AlertLifecycleManager(test_db).create_alert(
        customer_id=customer.id,
        reason="Renewal at risk",
        severity="critical",
    )
    await test_db.commit()
    return alert.id


@pytest_asyncio.fixture
async def pending_alert(test_db: AsyncSession, customer):
    lifecycle = AlertLifecycleManager(test_db)
    alert = await lifecycle.create_alert(customer_id=customer.id, reason="Low NPS", severity="high_risk")
    await lifecycle.request_approval(alert, None, {"reason": "Resolution conditions met"})
    await test_db.commit()
    return alert.id


class TestListAlerts:
    """Tests for GET /red-zone/alerts."""

    @pytest.mark.asyncio
    async def test_list_and_filters(self, authenticated_client: AsyncClient, test_db: AsyncSession, customer, open_alert):
        other = Customer(**CustomerFactory())
        test_db.add(other)
        await test_db.flush()
        other_id = other.id
        await AlertLifecycleManager(test_db).create_alert(
            customer_id=other_id, reason="Usage dropped", severity="attention_needed"
        )
        await test_db.commit()

        response = await authenticated_client.get(ALERTS_PREFIX)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        # Newest first
        assert data["items"][0]["customer_id"] == other_id

        response = await authenticated_client.get(ALERTS_PREFIX, params={"severity": "critical"})
        assert [a["id"] for a in response.json()["items"]] == [open_alert]

        response = await authenticated_client.get(ALERTS_PREFIX, params={"customer_id": other_id})
        assert response.json()["total"] == 1

        response = await authenticated_client.get(ALERTS_PREFIX, params={"status": "resolved"})
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_pagination(self, authenticated_client: AsyncClient, open_alert):
        response = await authenticated_client.get(ALERTS_PREFIX, params={"page": 2, "page_size": 1})
        data = response.json()
        assert data["page"] == 2
        assert data["items"] == []
        assert data["total"] == 1

    @pytest.mark.asyncio
    async def test_bad_status_filter(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get(ALERTS_PREFIX, params={"status": "snoozed"})
        assert response.status_code == 422


class TestAlertDetail:
    @pytest.mark.asyncio
    async def test_detail_includes_activity(self, authenticated_client: AsyncClient, open_alert):
        response = await authenticated_client.get(f"{ALERTS_PREFIX}/{open_alert}")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "open"
        assert [a["action"] for a in data["activities"]] == ["created"]

    @pytest.mark.asyncio
    async def test_missing_alert(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get(f"{ALERTS_PREFIX}/424242")
        assert response.status_code == 404


class TestAlertActions:
    """Escalate, update, resolve, request approval and approve."""

    @pytest.mark.asyncio
    async def test_update_notes_and_assignee(self, authenticated_client: AsyncClient, test_user, open_alert):
        response = await authenticated_client.patch(
            f"{ALERTS_PREFIX}/{open_alert}", json={"notes": "Left voicemail", "assigned_to": test_user.id}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["notes"] == "Left voicemail"
        assert data["assigned_to"] == test_user.id
        assert data["activities"][-1]["action"] == "updated"

    @pytest.mark.asyncio
    async def test_assign_unknown_user(self, authenticated_client: AsyncClient, open_alert):
        response = await authenticated_client.patch(f"{ALERTS_PREFIX}/{open_alert}", json={"assigned_to": 9999})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_escalate(self, authenticated_client: AsyncClient, test_user, open_alert):
        response = await authenticated_client.post(
            f"{ALERTS_PREFIX}/{open_alert}/escalate", json={"to_user_id": test_user.id, "note": "Exec call"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "open"
        assert data["escalated_to"] == test_user.id
        assert data["activities"][-1]["performed_by"] == f"user:{test_user.id}"

    @pytest.mark.asyncio
    async def test_resolve_clears_red_zone_flag(
        self, authenticated_client: AsyncClient, test_db: AsyncSession, customer, open_alert
    ):
        customer_id = customer.id
        # Any alert mutation refreshes the flag
        await authenticated_client.patch(f"{ALERTS_PREFIX}/{open_alert}", json={"notes": "Watching"})
        assert (await test_db.get(Customer, customer_id, populate_existing=True)).in_red_zone is True

        response = await authenticated_client.post(
            f"{ALERTS_PREFIX}/{open_alert}/resolve", json={"resolution_summary": "Renewal signed"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "resolved"
        assert data["resolution_summary"] == "Renewal signed"
        assert data["resolved_at"] is not None

        refreshed = await test_db.get(Customer, customer_id, populate_existing=True)
        assert refreshed.in_red_zone is False

    @pytest.mark.asyncio
    async def test_resolve_twice_conflicts(self, authenticated_client: AsyncClient, open_alert):
        url = f"{ALERTS_PREFIX}/{open_alert}/resolve"
        await authenticated_client.post(url, json={"resolution_summary": "Done"})
        response = await authenticated_client.post(url, json={"resolution_summary": "Again"})
        assert response.status_code == 409
        assert response.json()["code"] == "BIZ_004"

        detail = await authenticated_client.get(f"{ALERTS_PREFIX}/{open_alert}")
        assert [a["action"] for a in detail.json()["activities"]] == ["created", "resolved"]

    @pytest.mark.asyncio
    async def test_request_approval(self, authenticated_client: AsyncClient, open_alert):
        response = await authenticated_client.post(
            f"{ALERTS_PREFIX}/{open_alert}/request-approval", json={"note": "Customer recovered"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "pending_approval"

    @pytest.mark.asyncio
    async def test_team_lead_approves(self, team_lead_client: AsyncClient, team_lead_user, pending_alert):
        response = await team_lead_client.post(f"{ALERTS_PREFIX}/{pending_alert}/approve", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "resolved"
        assert data["resolved_by"] == f"user:{team_lead_user.id}"
        assert [a["action"] for a in data["activities"]] == ["created", "updated", "resolved"]

    @pytest.mark.asyncio
    async def test_csm_cannot_approve(self, authenticated_client: AsyncClient, pending_alert):
        response = await authenticated_client.post(f"{ALERTS_PREFIX}/{pending_alert}/approve", json={})
        assert response.status_code == 403

        detail = await authenticated_client.get(f"{ALERTS_PREFIX}/{pending_alert}")
        assert detail.json()["status"] == "pending_approval"

    @pytest.mark.asyncio
    async def test_approve_open_alert_conflicts(self, team_lead_client: AsyncClient, open_alert):
        response = await team_lead_client.post(f"{ALERTS_PREFIX}/{open_alert}/approve", json={})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_csm_cannot_resolve_pending(self, authenticated_client: AsyncClient, pending_alert):
        response = await authenticated_client.post(
            f"{ALERTS_PREFIX}/{pending_alert}/resolve", json={"resolution_summary": "Skipping approval"}
        )
        assert response.status_code == 403

        detail = await authenticated_client.get(f"{ALERTS_PREFIX}/{pending_alert}")
        assert detail.json()["status"] == "pending_approval"
        assert [a["action"] for a in detail.json()["activities"]] == ["created", "updated"]

    @pytest.mark.asyncio
    async def test_team_lead_resolves_pending(self, team_lead_client: AsyncClient, pending_alert):
        response = await team_lead_client.post(
            f"{ALERTS_PREFIX}/{pending_alert}/resolve", json={"resolution_summary": "Checked with CSM"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "resolved"


class TestCreateAlert:
    """Tests for POST /red-zone/alerts (manually raised alerts)."""

    @pytest.mark.asyncio
    async def test_create_manual_alert(
        self, authenticated_client: AsyncClient, test_db: AsyncSession, test_user, customer
    ):
        customer_id = customer.id
        response = await authenticated_client.post(
            ALERTS_PREFIX,
            json={
                "customer_id": customer_id,
                "reason": "Champion left the company",
                "severity": "critical",
                "notes": "Heard on QBR call",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "open"
        assert data["rule_id"] is None
        assert data["severity"] == "critical"
        assert data["notes"] == "Heard on QBR call"
        assert [a["action"] for a in data["activities"]] == ["created"]
        assert data["activities"][0]["performed_by"] == f"user:{test_user.id}"

        refreshed = await test_db.get(Customer, customer_id, populate_existing=True)
        assert refreshed.in_red_zone is True

    @pytest.mark.asyncio
    async def test_unknown_customer(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post(
            ALERTS_PREFIX, json={"customer_id": 31337, "reason": "Churn risk", "severity": "high_risk"}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_bad_severity(self, authenticated_client: AsyncClient, customer):
        response = await authenticated_client.post(
            ALERTS_PREFIX, json={"customer_id": customer.id, "reason": "Churn risk", "severity": "urgent"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_auth(self, client: AsyncClient, customer):
        response = await client.post(
            ALERTS_PREFIX, json={"customer_id": customer.id, "reason": "Churn risk", "severity": "critical"}
        )
        assert response.status_code == 401


class TestChecksAndSweep:
    """POST /red-zone/customers/{id}/check and /red-zone/sweep."""

    @pytest_asyncio.fixture
    async def low_nps_rule(self, test_db: AsyncSession):
        rule = RedZoneRule(
            **RedZoneRuleFactory(
                name="Low NPS",
                conditions=condition_tree([ConditionFactory(field="nps_score", operator="less_than", value="6")]),
            )
        )
        test_db.add(rule)
        await test_db.commit()
        return rule.id

    @pytest.mark.asyncio
    async def test_check_customer(self, authenticated_client: AsyncClient, customer, low_nps_rule):
        customer_id = customer.id
        response = await authenticated_client.post(f"{RED_ZONE_PREFIX}/customers/{customer_id}/check")
        assert response.status_code == 200
        data = response.json()
        assert data["matched_rule_ids"] == [low_nps_rule]
        assert len(data["alerts_created"]) == 1
        assert data["in_red_zone"] is True

        # Second check finds the open alert
        response = await authenticated_client.post(f"{RED_ZONE_PREFIX}/customers/{customer_id}/check")
        assert response.json()["alerts_created"] == []

    @pytest.mark.asyncio
    async def test_check_missing_customer(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post(f"{RED_ZONE_PREFIX}/customers/31337/check")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_sweep_requires_permission(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post(f"{RED_ZONE_PREFIX}/sweep")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_sweep(self, admin_client: AsyncClient, customer, low_nps_rule):
        response = await admin_client.post(f"{RED_ZONE_PREFIX}/sweep")
        assert response.status_code == 200
        data = response.json()
        assert data["rules_loaded"] == 1
        assert data["customers_processed"] == 1
        assert data["alerts_created"] == 1
        assert data["interrupted"] is False


class TestAvailableFields:
    @pytest.mark.asyncio
    async def test_catalog(self, authenticated_client: AsyncClient, customer):
        response = await authenticated_client.get(f"{RED_ZONE_PREFIX}/available-fields")
        assert response.status_code == 200
        fields = response.json()
        assert fields["nps_score"] == {"label": "Nps Score", "type": "number", "entity_type": "customer"}
        assert fields["campaign_stats.lastSentDate"]["type"] == "date"
        assert fields["active_stores"]["entity_type"] == "customer_metrics"
        assert "in_red_zone" not in fields
