import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from sqlmodel import select

from berryvision import crud
from berryvision.agent.artifacts import AssessmentAlert, GrowthAssessment
from berryvision.core.config import settings
from berryvision.models import (
    EnvironmentalReading,
    GrowthAlert,
    GrowthRecord,
    GrowthStage,
    Plant,
    get_datetime_utc,
)


def test_create_plant_records_initial_stage(client, session):
    response = client.post(
        "/api/growth/plants",
        json={"plant_code": "B-007", "sector": "south", "crop_type": "raspberry", "current_stage": "vegetative"},
    )
    assert response.status_code == 200
    plant = response.json()["plant"]
    assert plant["health_status"] == "healthy"
    assert plant["is_active"] is True

    stages = session.exec(select(GrowthStage)).all()
    assert [stage.stage for stage in stages] == ["vegetative"]

    duplicate = client.post("/api/growth/plants", json={"plant_code": "B-007"})
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "A plant with that code already exists"


def test_list_plants_includes_record_stats(client, session, plant):
    crud.save(session, GrowthRecord(plant_id=plant.id, image_url="/uploads/1.jpg", height_cm=30))
    crud.save(session, Plant(plant_code="C-1", sector="south"))

    body = client.get("/api/growth/plants", params={"sector": "north"}).json()

    assert body["total"] == 1
    listed = body["plants"][0]
    assert listed["plant_code"] == "A-001"
    assert listed["total_records"] == 1
    assert listed["latest_record"]["height_cm"] == 30


def test_growth_record_requires_plant_and_image(client, plant):
    assert client.post("/api/growth/records", json={"plant_id": str(plant.id)}).status_code == 400
    missing = client.post(
        "/api/growth/records", json={"plant_id": str(uuid.uuid4()), "image_url": "/uploads/1.jpg"}
    )
    assert missing.status_code == 404
    assert missing.json()["error"] == "Plant not found"


def test_growth_record_without_ai_fills_climate_from_sector(client, session, plant):
    crud.save(session, EnvironmentalReading(sector="north", temperature=22.5, humidity=71))

    body = client.post(
        "/api/growth/records",
        json={"plant_id": str(plant.id), "image_url": "/uploads/1.jpg", "height_cm": 30, "temperature": 19},
    ).json()

    record = body["record"]
    assert body["analysis"] is None
    assert record["temperature"] == 19
    assert record["humidity"] == 71
    assert record["growth_rate"] == 0
    assert record["days_since_last"] == 0
    assert session.exec(select(GrowthAlert)).all() == []


def test_growth_record_with_assessment_raises_alerts_and_updates_plant(client, session, plant, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "test-key")
    assessment = GrowthAssessment(
        growth_score=45,
        health_status="critical",
        detected_issues=["Clorosis"],
        recommendations=["Revisar pH del suelo", "Aplicar quelato de hierro"],
        alerts=[AssessmentAlert(type="nutrient_deficiency", severity="critical", message="Clorosis severa")],
    )

    with patch("berryvision.api.routes.growth_records.GrowthAnalysisAgent") as agent_cls:
        agent_cls.return_value.run = AsyncMock(return_value=assessment)
        body = client.post(
            "/api/growth/records", json={"plant_id": str(plant.id), "image_url": "/uploads/2.jpg", "height_cm": 31}
        ).json()

    record = body["record"]
    assert record["growth_score"] == 45
    assert record["health_status"] == "critical"
    assert record["detected_issues"] == ["Clorosis"]
    assert record["ai_recommendations"] == "Revisar pH del suelo\n\nAplicar quelato de hierro"
    assert body["analysis"]["overall_assessment"] == ""

    alert = session.exec(select(GrowthAlert)).one()
    assert alert.title == "Alert: nutrient_deficiency"
    assert alert.severity == "critical"
    assert alert.growth_record_id == uuid.UUID(record["id"])

    session.refresh(plant)
    assert plant.health_status == "critical"


def test_growth_record_model_failure_still_stores_record(client, session, plant, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "test-key")

    with patch("berryvision.api.routes.growth_records.GrowthAnalysisAgent") as agent_cls:
        agent_cls.return_value.run = AsyncMock(side_effect=ValueError("bad json"))
        response = client.post(
            "/api/growth/records", json={"plant_id": str(plant.id), "image_url": "/uploads/3.jpg"}
        )

    assert response.status_code == 200
    assert response.json()["analysis"] is None
    assert len(session.exec(select(GrowthRecord)).all()) == 1


def test_shrinking_plant_raises_growth_slow_alert(client, session, plant):
    crud.save(
        session,
        GrowthRecord(
            plant_id=plant.id,
            image_url="/uploads/old.jpg",
            height_cm=50,
            recorded_at=get_datetime_utc() - timedelta(days=10),
        ),
    )

    body = client.post(
        "/api/growth/records",
        json={"plant_id": str(plant.id), "image_url": "/uploads/new.jpg", "height_cm": 40},
    ).json()

    assert body["record"]["growth_rate"] == -20
    assert body["record"]["days_since_last"] >= 10
    alert = session.exec(select(GrowthAlert)).one()
    assert alert.alert_type == "growth_slow"
    assert alert.severity == "critical"
    assert alert.detected_value == "-20.00"


def test_list_records_with_plant_summary(client, session, plant):
    crud.save(session, GrowthRecord(plant_id=plant.id, image_url="/uploads/1.jpg"))
    body = client.get("/api/growth/records", params={"plant_id": str(plant.id)}).json()
    assert body["total"] == 1
    assert body["records"][0]["plant"]["plant_code"] == "A-001"


def test_environment_reading_alerts_sector_plants(client, session, plant):
    crud.save(session, Plant(plant_code="A-002", sector="north"))
    crud.save(session, Plant(plant_code="S-001", sector="south"))

    response = client.post(
        "/api/growth/environment", json={"sector": "north", "temperature": 36, "humidity": 90}
    )

    assert response.status_code == 200
    assert response.json()["reading"]["temperature"] == 36
    alerts = session.exec(select(GrowthAlert)).all()
    # two plants in the sector, two breaches each
    assert len(alerts) == 4
    assert {a.severity for a in alerts} == {"critical", "warning"}
    assert all(a.alert_type == "environmental" for a in alerts)


def test_environment_reading_requires_temperature(client):
    response = client.post("/api/growth/environment", json={"sector": "north"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_environment_summary(client, session):
    crud.save(session, EnvironmentalReading(sector="north", temperature=20, humidity=70))
    crud.save(session, EnvironmentalReading(sector="north", temperature=25, humidity=80))
    crud.save(
        session,
        EnvironmentalReading(
            sector="north", temperature=5, humidity=10, recorded_at=get_datetime_utc() - timedelta(days=30)
        ),
    )

    body = client.get("/api/growth/environment", params={"sector": "north"}).json()

    assert len(body["readings"]) == 2
    assert body["averages"] == {"temperature": 22.5, "humidity": 75.0}
    assert body["chart_data"][-1]["max_temp"] == 25


def test_alert_lifecycle(client, session, plant):
    alert = crud.save(
        session, GrowthAlert(plant_id=plant.id, alert_type="environmental", severity="critical", title="t", message="m")
    )

    listed = client.get("/api/growth/alerts", params={"status": "active"}).json()
    assert listed["stats"] == {"active": 1, "critical": 1}
    assert listed["alerts"][0]["plant"]["plant_code"] == "A-001"

    assert client.patch("/api/growth/alerts", json={"alert_id": str(alert.id)}).status_code == 400

    acknowledged = client.patch(
        "/api/growth/alerts", json={"alert_id": str(alert.id), "status": "acknowledged"}
    ).json()["alert"]
    assert acknowledged["acknowledged_at"] is not None

    resolved = client.patch(
        "/api/growth/alerts",
        json={"alert_id": str(alert.id), "status": "resolved", "resolution_notes": "Riego ajustado"},
    ).json()["alert"]
    assert resolved["resolved_at"] is not None
    assert resolved["resolution_notes"] == "Riego ajustado"

    assert client.get("/api/growth/alerts").json()["stats"]["active"] == 0


def test_growth_stats(client, session, plant):
    crud.save(session, GrowthRecord(plant_id=plant.id, image_url="/uploads/1.jpg", height_cm=20, growth_score=60))
    crud.save(session, GrowthRecord(plant_id=plant.id, image_url="/uploads/2.jpg", height_cm=26, growth_score=80))
    crud.save(session, EnvironmentalReading(sector="north", temperature=18, humidity=65))

    body = client.get("/api/growth/stats", params={"plant_id": str(plant.id)}).json()

    stats = body["stats"]
    assert stats["plants"]["total"] == 1
    assert stats["plants"]["healthy"] == 1
    assert stats["plants"]["by_stage"] == {"seedling": 1}
    assert stats["records"] == {"total": 2, "avg_growth_score": 70}
    assert stats["environment"]["temperature"] == 18
    assert stats["weekly_trend"][0]["records"] == 2

    history = body["plant_stats"]
    assert history["total_records"] == 2
    assert history["total_growth"] == 6
    assert len(history["growth_history"]) == 2
