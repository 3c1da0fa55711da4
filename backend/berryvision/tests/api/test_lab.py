import uuid
from unittest.mock import AsyncMock, patch

from sqlmodel import select

from berryvision import crud
from berryvision.agent.artifacts import (
    LabCorrelation,
    LabInterpretation,
    LabInterpretationResult,
    LabRecommendation,
)
from berryvision.core.config import settings
from berryvision.models import AnalysisCorrelation, AnalysisOptimalRange, GrowthAlert, LabAnalysis


def soil_payload(**overrides):
    payload = {
        "analysis_type": "soil",
        "sector": "north",
        "sample_date": "2026-03-02",
        "results": {"ph": 6.8, "nitrogen": 12},
    }
    payload.update(overrides)
    return payload


def test_create_lab_analysis_without_ai(client):
    body = client.post("/api/lab/analyses", json=soil_payload()).json()

    analysis = body["analysis"]
    assert analysis["status"] == "pending"
    assert analysis["analysis_code"].startswith("SOI-20260302-")
    assert body["ai_interpretation"] is None
    assert body["ai_recommendations"] == ""


def test_create_lab_analysis_requires_results(client):
    response = client.post("/api/lab/analyses", json=soil_payload(results={}))
    assert response.status_code == 400


def test_lab_interpretation_stores_correlations_and_alerts(client, session, plant, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "test-key")
    crud.save(
        session,
        AnalysisOptimalRange(
            crop_type="blueberry", analysis_type="soil", parameter_name="ph", optimal_min=4.5, optimal_max=5.5
        ),
    )
    result = LabInterpretationResult(
        interpretation=LabInterpretation(
            overall_status="critical", summary="pH demasiado alto", main_issues=["pH 6.8", "Nitrógeno bajo"]
        ),
        correlations=[LabCorrelation(type="growth", description="pH alto frena el crecimiento", confidence=0.8)],
        recommendations=[LabRecommendation(priority="alta", action="Aplicar azufre")],
    )

    with patch("berryvision.api.routes.lab.LabInterpretationAgent") as agent_cls:
        agent_cls.return_value.run = AsyncMock(return_value=result)
        body = client.post("/api/lab/analyses", json=soil_payload(plant_id=str(plant.id))).json()
        context = agent_cls.return_value.run.call_args.args[0]

    assert context.plant_code == "A-001"
    assert context.reference_ranges and context.reference_ranges[0].startswith("ph: optimal 4.5-5.5")
    assert body["ai_interpretation"]["summary"] == "pH demasiado alto"
    assert body["ai_recommendations"] == "[ALTA] Aplicar azufre"

    correlation = session.exec(select(AnalysisCorrelation)).one()
    assert correlation.correlation_type == "growth"
    assert correlation.analysis_id == uuid.UUID(body["analysis"]["id"])

    alerts = session.exec(select(GrowthAlert)).all()
    assert [a.message for a in alerts] == ["pH 6.8", "Nitrógeno bajo"]
    assert {a.severity for a in alerts} == {"critical"}
    assert {a.alert_type for a in alerts} == {"nutrient_issue"}


def test_list_and_update_lab_analyses(client, session):
    client.post("/api/lab/analyses", json=soil_payload())
    client.post("/api/lab/analyses", json=soil_payload(analysis_type="foliar", sector="south"))

    body = client.get("/api/lab/analyses", params={"type": "soil"}).json()
    assert body["total"] == 1
    assert body["stats"] == {"total": 2, "pending": 2, "by_type": {"soil": 1, "foliar": 1}}

    analysis_id = body["analyses"][0]["id"]
    updated = client.patch("/api/lab/analyses", json={"analysis_id": analysis_id, "status": "reviewed"}).json()
    assert updated["analysis"]["status"] == "reviewed"
    assert client.patch("/api/lab/analyses", json={"status": "reviewed"}).status_code == 400


def test_treatment_lifecycle(client, session, plant):
    lab_id = client.post("/api/lab/analyses", json=soil_payload()).json()["analysis"]["id"]

    planned = client.post(
        "/api/lab/treatments",
        json={
            "lab_analysis_id": lab_id,
            "plant_id": str(plant.id),
            "treatment_type": "fertilization",
            "treatment_name": "Corrección de pH",
            "product_name": "Azufre",
        },
    ).json()["treatment"]
    assert planned["status"] == "planned"
    assert session.get(LabAnalysis, uuid.UUID(lab_id)).status == "applied"

    applied = client.post(
        "/api/lab/treatments",
        json={"treatment_type": "fungicide", "treatment_name": "Cobre", "applied_date": "2026-03-05"},
    ).json()["treatment"]
    assert applied["status"] == "completed"

    missing = client.post(
        "/api/lab/treatments",
        json={"lab_analysis_id": str(uuid.uuid4()), "treatment_type": "x", "treatment_name": "y"},
    )
    assert missing.status_code == 404

    listed = client.get("/api/lab/treatments", params={"analysis_id": lab_id}).json()["treatments"]
    assert len(listed) == 1
    assert listed[0]["lab_analysis"]["analysis_type"] == "soil"
    assert listed[0]["plant"]["plant_code"] == "A-001"

    updated = client.patch(
        "/api/lab/treatments",
        json={"treatment_id": planned["id"], "status": "completed", "effectiveness": "good", "applied_by": ""},
    ).json()["treatment"]
    assert updated["status"] == "completed"
    assert updated["effectiveness"] == "good"
    assert updated["applied_by"] is None
