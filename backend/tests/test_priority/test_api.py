"""
Tests for priority rule validation and the manual escalation endpoint.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from pydantic import ValidationError

from pdelivery.api.deps import get_current_company_id
from pdelivery.database.connection import get_db
from pdelivery.main import app
from pdelivery.schemas.priority import PrioritySettingCreate
from pdelivery.services.priority.escalator import EscalationResult


class TestPrioritySettingSchema:
    def test_open_status_accepted(self):
        rule = PrioritySettingCreate(
            status="pending",
            minutes_threshold=20,
            priority_level=2,
            priority_label="Atrasado",
            color="#FF0000",
        )

        assert rule.minutes_threshold == 20

    @pytest.mark.parametrize("closed", ["entregue", "cancelado", "finalizado"])
    def test_closed_status_rejected(self, closed):
        with pytest.raises(ValidationError):
            PrioritySettingCreate(
                status=closed,
                minutes_threshold=20,
                priority_level=2,
                priority_label="Atrasado",
            )

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValidationError):
            PrioritySettingCreate(
                status="pending",
                minutes_threshold=-1,
                priority_level=1,
                priority_label="Atrasado",
            )

    def test_invalid_color_rejected(self):
        with pytest.raises(ValidationError):
            PrioritySettingCreate(
                status="pending",
                minutes_threshold=5,
                priority_level=1,
                priority_label="Atrasado",
                color="red; drop",
            )


class TestEscalateEndpoint:
    def test_runs_scan_for_caller_company(self, company_id, mock_session):
        escalated_id = uuid4()
        app.dependency_overrides[get_current_company_id] = lambda: company_id
        app.dependency_overrides[get_db] = lambda: mock_session
        try:
            with patch("pdelivery.api.v1.priority_settings.PriorityEscalator") as escalator_cls:
                escalator_cls.return_value.escalate = AsyncMock(
                    return_value=EscalationResult(
                        scanned=4,
                        escalated=1,
                        escalated_ids=[str(escalated_id)],
                    )
                )
                response = TestClient(app).post("/api/v1/priority-settings/escalate")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {
            "scanned": 4,
            "escalated": 1,
            "failed": 0,
            "escalated_ids": [str(escalated_id)],
        }
        escalator_cls.return_value.escalate.assert_awaited_once_with(company_id=company_id)
