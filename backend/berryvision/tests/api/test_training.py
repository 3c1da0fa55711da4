import json
from pathlib import Path

from berryvision.core.config import settings


def test_create_training_image_requires_fields(client):
    response = client.post("/api/training", json={"imageUrl": "/uploads/a.jpg", "cropType": "blueberry"})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields: imageUrl, cropType, healthStatus"


def test_training_crud_accepts_camel_case(client):
    created = client.post(
        "/api/training",
        json={
            "imageUrl": "/uploads/a.jpg",
            "cropType": "blueberry",
            "healthStatus": "alert",
            "diseaseName": "Botrytis",
            "diseaseConfidence": 88,
            "phenologyBbch": 65,
        },
    ).json()["image"]

    assert created["verified_by"] == "user"
    assert created["verified_at"] is not None
    assert created["used_for_training"] is False

    updated = client.patch(
        "/api/training", json={"id": created["id"], "usedForTraining": True, "trainingBatch": "batch-1"}
    ).json()["image"]
    assert updated["used_for_training"] is True
    assert updated["training_batch"] == "batch-1"

    assert client.get("/api/training", params={"used_for_training": True}).json()["total"] == 1
    assert client.get("/api/training", params={"used_for_training": False}).json()["total"] == 0

    assert client.delete("/api/training", params={"id": created["id"]}).json() == {"success": True}
    assert client.get("/api/training").json()["total"] == 0


def test_export_dataset_empty_is_404(client):
    response = client.get("/api/export-dataset")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "No training data available"}


def test_export_dataset_writes_one_chat_example_per_image(client):
    client.post(
        "/api/training",
        json={"imageUrl": "/uploads/a.jpg", "cropType": "blueberry", "healthStatus": "healthy"},
    )
    client.post(
        "/api/training",
        json={
            "imageUrl": "/uploads/b.jpg",
            "cropType": "raspberry",
            "healthStatus": "alert",
            "pestName": "Thrips",
            "pestConfidence": 60,
        },
    )

    response = client.get("/api/export-dataset")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/jsonl")
    assert "berryvision_dataset_" in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert len(lines) == 2
    examples = [json.loads(line) for line in lines]
    assert all(len(example["messages"]) == 3 for example in examples)
    answers = [json.loads(example["messages"][2]["content"]) for example in examples]
    assert {answer["health_status"] for answer in answers} == {"healthy", "alert"}
    assert {"name": "Thrips", "confidence": 60.0} in [answer["pest"] for answer in answers]


def test_upload_image_stores_file(client):
    response = client.post(
        "/api/upload-image",
        files={"file": ("leaf.PNG", b"\x89PNG fake bytes", "image/png")},
    )

    assert response.status_code == 200
    image_url = response.json()["image_url"]
    assert image_url.startswith(settings.UPLOAD_URL_PREFIX + "/training_")
    assert image_url.endswith(".png")
    stored = Path(settings.UPLOAD_DIR) / image_url.rsplit("/", 1)[-1]
    assert stored.read_bytes() == b"\x89PNG fake bytes"


def test_upload_image_rejects_bad_input(client):
    assert client.post("/api/upload-image").status_code == 400

    not_image = client.post("/api/upload-image", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert not_image.status_code == 400

    empty = client.post("/api/upload-image", files={"file": ("leaf.jpg", b"", "image/jpeg")})
    assert empty.status_code == 400
