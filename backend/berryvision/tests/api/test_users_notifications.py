import uuid

from sqlmodel import select

from berryvision import crud
from berryvision.models import DailyReport, FieldLogEntry, NotificationRecord, get_datetime_utc


def create_user(client, email, **extra):
    payload = {"first_name": "Ana", "last_name": "Pérez", "email": email, **extra}
    return client.post("/api/users", json=payload).json()["user"]


def test_user_crud(client):
    user = create_user(client, "ana@example.com", phone="+56911111111")
    assert user["whatsapp"] == "+56911111111"
    assert user["role"] == "field_engineer"

    duplicate = client.post(
        "/api/users", json={"first_name": "A", "last_name": "B", "email": "ana@example.com"}
    )
    assert duplicate.status_code == 400

    other = create_user(client, "luis@example.com", role="admin")
    clash = client.patch("/api/users", json={"user_id": user["id"], "email": "luis@example.com"})
    assert clash.status_code == 400

    updated = client.patch("/api/users", json={"user_id": user["id"], "notify_whatsapp": True}).json()["user"]
    assert updated["notify_whatsapp"] is True

    admins = client.get("/api/users", params={"role": "admin"}).json()["users"]
    assert [u["id"] for u in admins] == [other["id"]]

    assert client.delete("/api/users", params={"user_id": user["id"]}).json() == {
        "success": True,
        "message": "User deactivated",
    }
    active = client.get("/api/users", params={"active": True}).json()["users"]
    assert [u["id"] for u in active] == [other["id"]]

    assert client.delete("/api/users", params={"user_id": str(uuid.uuid4())}).status_code == 404


def log_entry_for(session, user_id):
    crud.save(
        session,
        FieldLogEntry(
            entry_date=get_datetime_utc().date(),
            crop="blueberry",
            problem_type="pest",
            problem="Áfidos en brotes",
            recorded_by=uuid.UUID(user_id),
        ),
    )


def test_activity_and_inactive_users(client, session):
    active = create_user(client, "active@example.com")
    create_user(client, "idle@example.com", first_name="Idle")
    log_entry_for(session, active["id"])

    users = client.get("/api/users", params={"include_activity": True}).json()
    by_email = {row["email"]: row for row in users["activity"]}
    assert by_email["active@example.com"]["field_log_entries"] == 1
    assert by_email["active@example.com"]["total_uploads"] == 1
    assert by_email["idle@example.com"]["total_uploads"] == 0

    inactive = client.get("/api/notifications", params={"type": "inactive"}).json()
    assert inactive["count"] == 1
    assert inactive["inactive_users"][0]["full_name"] == "Idle Pérez"

    assert client.get("/api/notifications", params={"type": "nope"}).status_code == 400


def test_send_reminders(client, session):
    create_user(client, "idle@example.com", notify_email=False)

    body = client.post("/api/notifications", json={"action": "send_reminders"}).json()

    assert body["sent"] == 1
    assert body["notifications"][0]["channel"] == "whatsapp"
    record = session.exec(select(NotificationRecord)).one()
    assert record.notification_type == "daily_reminder"
    assert record.status == "sent"
    assert record.sent_at is not None


def test_send_reminders_with_everyone_active(client, session):
    user = create_user(client, "busy@example.com")
    log_entry_for(session, user["id"])

    body = client.post("/api/notifications", json={"action": "send_reminders"}).json()
    assert body == {"success": True, "message": "No inactive users to notify", "sent": 0}


def test_send_admin_report(client, session):
    active = create_user(client, "active@example.com")
    create_user(client, "idle@example.com")
    log_entry_for(session, active["id"])
    today = get_datetime_utc().date().isoformat()

    body = client.post("/api/notifications", json={"action": "send_admin_report", "date": today}).json()

    assert body["report"]["date"] == today
    assert body["report"]["total_users"] == 2
    assert body["report"]["active_users"] == 1
    assert body["report"]["inactive_users"] == 1

    report = session.exec(select(DailyReport)).one()
    assert report.sent_to_admin is True
    notification = session.exec(select(NotificationRecord)).one()
    assert notification.notification_type == "admin_report"
    assert notification.details["admin_email"]

    again = client.get("/api/notifications", params={"type": "daily_report", "date": today}).json()
    assert again["report"]["total_users"] == 2
    assert len(session.exec(select(DailyReport)).all()) == 1


def test_unknown_notification_action(client):
    response = client.post("/api/notifications", json={"action": "explode"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid action"}
