import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from berryvision import crud
from berryvision.agent.artifacts import Detection, ImageDiagnosis
from berryvision.core.config import settings
from berryvision.models import Analysis, GrowthAlert, get_datetime_utc


def test_create_analysis_requires_crop_type(client):
    response = client.post("/api/analyses", json={"sector": "north"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Missing required field: crop_type"}


def test_upsert_uses_client_id_and_updates_on_resync(client):
    analysis_id = str(uuid.uuid4())
    first = client.post(
        "/api/analyses",
        json={
            "id": analysis_id,
            "crop_type": "blueberry",
            "image_url": "/uploads/a.jpg",
            "sector": "north",
            "latitude": 19.1,
        },
    )
    assert first.status_code == 200
    assert first.json()["analysis"]["id"] == analysis_id

    second = client.post("/api/analyses", json={"id": analysis_id, "crop_type": "raspberry", "notes": "re-sync"})
    assert second.json()["analysis"]["crop_type"] == "raspberry"
    assert second.json()["analysis"]["notes"] == "re-sync"

    resynced = client.post(
        "/api/analyses", json={"id": analysis_id, "crop_type": "raspberry", "sync_status": "synced"}
    ).json()["analysis"]
    assert resynced["sync_status"] == "synced"
    assert resynced["image_url"] == "/uploads/a.jpg"
    assert resynced["sector"] == "north"
    assert resynced["latitude"] == 19.1
    assert resynced["notes"] == "re-sync"

    listing = client.get("/api/analyses").json()
    assert listing["total"] == 1


def test_list_filters_and_paginates(client, session):
    now = get_datetime_utc()
    for i, (crop, status) in enumerate(
        [("blueberry", "healthy"), ("blueberry", "alert"), ("raspberry", "alert"), ("blueberry", "critical")]
    ):
        crud.save(session, Analysis(crop_type=crop, health_status=status, timestamp=now - timedelta(hours=i)))

    alerts = client.get("/api/analyses", params={"status": "alert"}).json()
    assert alerts["total"] == 2

    blueberries = client.get("/api/analyses", params={"crop_type": "blueberry", "status": "all"}).json()
    assert blueberries["total"] == 3

    page = client.get("/api/analyses", params={"limit": 2, "offset": 2}).json()
    assert page["total"] == 4
    assert len(page["analyses"]) == 2
    assert page["limit"] == 2 and page["offset"] == 2


def test_list_filters_by_inclusive_date_range(client, session):
    for day in (13, 14, 15):
        crud.save(
            session,
            Analysis(crop_type="blueberry", timestamp=datetime(2026, 10, day, 12, tzinfo=timezone.utc)),
        )
    crud.save(
        session,
        Analysis(crop_type="raspberry", timestamp=datetime(2026, 10, 14, 23, 30, tzinfo=timezone.utc)),
    )

    one_day = client.get("/api/analyses", params={"date_from": "2026-10-14", "date_to": "2026-10-14"}).json()
    assert one_day["total"] == 2
    assert {a["timestamp"][:10] for a in one_day["analyses"]} == {"2026-10-14"}

    assert client.get("/api/analyses", params={"date_from": "2026-10-14"}).json()["total"] == 3
    assert client.get("/api/analyses", params={"date_to": "2026-10-13"}).json()["total"] == 1


def test_patch_and_delete(client, session):
    analysis = crud.save(session, Analysis(crop_type="blueberry"))

    assert client.patch("/api/analyses", json={}).status_code == 400
    assert client.patch("/api/analyses", json={"id": str(uuid.uuid4())}).status_code == 404

    patched = client.patch(
        "/api/analyses", json={"id": str(analysis.id), "health_status": "critical", "pest_name": "Thrips"}
    ).json()
    assert patched["analysis"]["health_status"] == "critical"
    assert patched["analysis"]["pest_name"] == "Thrips"

    assert client.delete("/api/analyses").status_code == 400
    assert client.delete("/api/analyses", params={"id": str(analysis.id)}).json() == {"success": True}
    assert client.get("/api/analyses").json()["total"] == 0


def test_process_requires_image_and_configured_ai(client, session):
    no_image = crud.save(session, Analysis(crop_type="blueberry"))
    response = client.post(f"/api/analyses/{no_image.id}/process")
    assert response.status_code == 400

    with_image = crud.save(session, Analysis(crop_type="blueberry", image_url="https://cdn.example.com/x.jpg"))
    response = client.post(f"/api/analyses/{with_image.id}/process")
    assert response.status_code == 400
    assert response.json()["error"] == "AI analysis is not configured"

    assert client.post(f"/api/analyses/{uuid.uuid4()}/process").status_code == 404


def test_process_stores_normalized_diagnosis(client, session, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "test-key")
    analysis = crud.save(session, Analysis(crop_type="blueberry", image_url="https://cdn.example.com/x.jpg"))
    diagnosis = ImageDiagnosis(
        health_status="alert", disease=Detection(name="Botrytis", confidence=77), phenology_bbch=71, fruit_count=12
    )

    with patch("berryvision.api.routes.analyses.ImageDiagnosisAgent") as agent_cls:
        agent_cls.return_value.run = AsyncMock(return_value=diagnosis)
        body = client.post(f"/api/analyses/{analysis.id}/process").json()

    assert body["processed"] is True
    stored = body["analysis"]
    assert stored["sync_status"] == "processed"
    assert stored["disease_name"] == "Botrytis"
    assert stored["disease_confidence"] == 77
    assert stored["phenology_bbch"] == 71
    assert stored["fruit_count"] == 12
    assert "Botrytis" in stored["raw_ai_response"]


def test_process_marks_error_when_model_fails(client, session, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "test-key")
    analysis = crud.save(session, Analysis(crop_type="blueberry", image_url="https://cdn.example.com/x.jpg"))

    with patch("berryvision.api.routes.analyses.ImageDiagnosisAgent") as agent_cls:
        agent_cls.return_value.run = AsyncMock(side_effect=RuntimeError("timeout"))
        body = client.post(f"/api/analyses/{analysis.id}/process").json()

    assert body["processed"] is False
    assert body["analysis"]["sync_status"] == "error"


def test_dashboard_stats(client, session, plant):
    now = get_datetime_utc()
    crud.save(session, Analysis(crop_type="blueberry", health_status="healthy", timestamp=now))
    crud.save(
        session,
        Analysis(crop_type="blueberry", health_status="alert", disease_name="Botrytis", timestamp=now),
    )
    crud.save(
        session,
        Analysis(crop_type="raspberry", health_status="critical", pest_name="Thrips", timestamp=now - timedelta(days=40)),
    )
    crud.save(session, GrowthAlert(plant_id=plant.id, alert_type="environmental", title="t", message="m"))

    body = client.get("/api/stats").json()

    assert body["stats"] == {
        "total_analyses": 3,
        "healthy_count": 1,
        "alert_count": 1,
        "critical_count": 1,
        "pending_count": 3,
    }
    assert len(body["weekly_trend"]) == 7
    assert body["weekly_trend"][-1]["date"] == now.date().isoformat()
    assert body["weekly_trend"][-1]["analyses"] == 2
    assert body["weekly_trend"][-1]["alerts"] == 1
    assert body["disease_counts"] == {"Botrytis": 1}
    assert body["pest_counts"] == {}
    assert len(body["recent_alerts"]) == 1
