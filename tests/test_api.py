from datetime import datetime, time, timedelta, timezone

from conftest import auth_headers, make_location, make_schedule, make_user

from app.errors import ProviderTimeout
from app.models import Absence, HourTracking, Notification, Schedule, User
from app.services.traffic_service import NO_DEFAULT_LOCATION
from app.timeutils import local_today


def admin_and_employee(db):
    admin = make_user(db, name="Ada Admin", role="admin", phone="+15550009999")
    employee = make_user(db)
    db.commit()
    return admin, employee


class TestAuth:
    def test_login_and_me(self, client, db):
        make_user(db)
        db.commit()

        login = client.post("/api/auth/login", json={"email": "Alice.Martin@example.com", "password": "secret123"})
        assert login.status_code == 200

        me = client.get("/api/auth/me", headers={"x-auth-token": login.json()["token"]})
        assert me.status_code == 200
        assert me.json()["name"] == "Alice Martin"
        assert "password_hash" not in me.json()

    def test_wrong_password(self, client, db):
        make_user(db)
        db.commit()

        response = client.post("/api/auth/login", json={"email": "alice.martin@example.com", "password": "nope"})

        assert response.status_code == 400
        assert response.json() == {"msg": "Invalid credentials"}

    def test_missing_and_bad_tokens(self, client):
        assert client.get("/api/auth/me").json() == {"msg": "No token, authorization denied"}
        response = client.get("/api/auth/me", headers={"x-auth-token": "garbage"})
        assert response.status_code == 401
        assert response.json() == {"msg": "Token is not valid"}

    def test_register_sends_welcome(self, client, db, email_sender):
        response = client.post(
            "/api/users/register",
            json={"name": "Bob Stone", "email": "bob@example.com", "password": "hunter22", "preferredLanguage": "fr"},
        )

        assert response.status_code == 200
        db.expire_all()
        user = db.query(User).filter(User.email == "bob@example.com").one()
        assert (user.role, user.preferred_language) == ("employee", "fr")
        assert email_sender.sent[0][:2] == ("bob@example.com", "Welcome to the Employee Scheduling System")

    def test_duplicate_registration(self, client, db):
        make_user(db, email="bob@example.com")
        db.commit()

        response = client.post(
            "/api/users/register", json={"name": "Bob", "email": "bob@example.com", "password": "hunter22"}
        )

        assert response.status_code == 400
        assert response.json() == {"msg": "User already exists"}

    def test_invalid_body(self, client):
        response = client.post("/api/users/register", json={"name": "Bob", "email": "not-an-email", "password": "x"})

        assert response.status_code == 400
        body = response.json()
        assert body["msg"] == "Invalid request"
        assert {error["field"] for error in body["errors"]} == {"email", "password"}


class TestUsers:
    def test_listing_requires_admin(self, client, db):
        admin, employee = admin_and_employee(db)

        assert client.get("/api/users", headers=auth_headers(employee)).status_code == 403
        listed = client.get("/api/users", headers=auth_headers(admin))
        assert {user["name"] for user in listed.json()} == {"Ada Admin", "Alice Martin"}

    def test_employees_only_see_themselves(self, client, db):
        admin, employee = admin_and_employee(db)

        assert client.get(f"/api/users/{employee.id}", headers=auth_headers(employee)).status_code == 200
        assert client.get(f"/api/users/{admin.id}", headers=auth_headers(employee)).status_code == 403

    def test_phone_is_stored_in_international_form(self, client, db):
        response = client.post(
            "/api/users/register",
            json={"name": "Bob Stone", "email": "bob@example.com", "password": "hunter22", "phone": "+1 (555) 000-7777"},
        )

        assert response.status_code == 200
        db.expire_all()
        assert db.query(User).filter(User.email == "bob@example.com").one().phone == "+15550007777"

    def test_malformed_phone_is_rejected(self, client, db):
        response = client.post(
            "/api/users/register",
            json={"name": "Bob Stone", "email": "bob@example.com", "password": "hunter22", "phone": "call me"},
        )

        assert response.status_code == 400
        assert [error["field"] for error in response.json()["errors"]] == ["phone"]

    def test_update_rejects_null_language(self, client, db):
        _, employee = admin_and_employee(db)

        response = client.put(
            f"/api/users/{employee.id}", json={"preferred_language": None}, headers=auth_headers(employee)
        )

        assert response.status_code == 400
        assert response.json()["msg"] == "Invalid request"
        db.expire_all()
        assert db.get(User, employee.id).preferred_language == "en"

    def test_update_checks_default_location(self, client, db):
        _, employee = admin_and_employee(db)
        closed = make_location(db, name="Closed depot", is_active=False)
        office = make_location(db)
        db.commit()
        url = f"/api/users/{employee.id}"

        for location_id in ("missing", closed.id):
            response = client.put(url, json={"default_location_id": location_id}, headers=auth_headers(employee))
            assert response.status_code == 400
            assert response.json() == {"msg": "Location not found or inactive"}

        updated = client.put(url, json={"default_location_id": office.id}, headers=auth_headers(employee))
        assert updated.json()["default_location_id"] == office.id

    def test_profile_edit(self, client, db):
        admin, employee = admin_and_employee(db)

        response = client.put(
            "/api/users/profile",
            json={"name": "Alice M.", "phone": "1 555 000 1212", "notificationPreferences": {"email": False}},
            headers=auth_headers(employee),
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["name"], body["phone"], body["role"]) == ("Alice M.", "+15550001212", "employee")
        assert body["notification_preferences"]["email"] is False

        taken = client.put("/api/users/profile", json={"email": admin.email}, headers=auth_headers(employee))
        assert taken.json() == {"msg": "User already exists"}

    def test_password_change(self, client, db):
        _, employee = admin_and_employee(db)
        headers = auth_headers(employee)

        wrong = client.put(
            "/api/users/password", json={"currentPassword": "nope", "newPassword": "n3w-secret"}, headers=headers
        )
        assert (wrong.status_code, wrong.json()) == (400, {"msg": "Current password is incorrect"})

        changed = client.put(
            "/api/users/password", json={"currentPassword": "secret123", "newPassword": "n3w-secret"}, headers=headers
        )
        assert changed.json() == {"msg": "Password updated successfully"}
        login = client.post("/api/auth/login", json={"email": employee.email, "password": "n3w-secret"})
        assert login.status_code == 200

    def test_default_location(self, client, db):
        _, employee = admin_and_employee(db)
        office = make_location(db)
        db.commit()
        headers = auth_headers(employee)

        missing = client.put("/api/users/default-location", json={}, headers=headers)
        assert missing.json() == {"msg": "Location ID is required"}

        updated = client.put("/api/users/default-location", json={"locationId": office.id}, headers=headers)
        assert updated.json()["default_location_id"] == office.id


class TestTeams:
    def test_create_and_join(self, client, db):
        owner = make_user(db, name="Olga Owner", phone=None)
        joiner = make_user(db)
        db.commit()

        created = client.post("/api/teams", json={"name": "Night crew", "departments": ["Ops"]}, headers=auth_headers(owner))
        assert created.status_code == 200
        code = created.json()["join_code"]

        joined = client.post("/api/teams/join", json={"join_code": code.lower()}, headers=auth_headers(joiner))
        assert joined.status_code == 200

        db.expire_all()
        assert db.get(User, owner.id).role == "admin"
        assert db.get(User, joiner.id).team_id == created.json()["id"]


class TestSchedules:
    def schedule_body(self, location, employees, **overrides):
        day = local_today() + timedelta(days=1)
        body = {
            "title": "Inventory",
            "date": day.isoformat(),
            "start_time": f"{day.isoformat()}T09:00:00Z",
            "end_time": f"{day.isoformat()}T17:00:00Z",
            "location_id": location.id,
            "employee_ids": [employee.id for employee in employees],
        }
        body.update(overrides)
        return body

    def test_create_notifies_assignees(self, client, db, email_sender):
        admin, employee = admin_and_employee(db)
        location = make_location(db)
        db.commit()

        response = client.post(
            "/api/schedules", json=self.schedule_body(location, [employee]), headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.json()["employee_ids"] == [employee.id]
        assert response.json()["status"] == "scheduled"
        assert [(to, subject) for to, subject, _ in email_sender.sent] == [("alice.martin@example.com", "New schedule")]
        db.expire_all()
        assert db.query(Notification).filter(Notification.relation == "schedule").count() == 1

    def test_employees_cannot_create(self, client, db):
        _, employee = admin_and_employee(db)
        location = make_location(db)
        db.commit()

        response = client.post(
            "/api/schedules", json=self.schedule_body(location, [employee]), headers=auth_headers(employee)
        )

        assert response.status_code == 403

    def test_rejects_inverted_times(self, client, db):
        admin, employee = admin_and_employee(db)
        location = make_location(db)
        db.commit()
        body = self.schedule_body(location, [employee])
        body["start_time"], body["end_time"] = body["end_time"], body["start_time"]

        assert client.post("/api/schedules", json=body, headers=auth_headers(admin)).status_code == 400

    def test_unknown_employee(self, client, db):
        admin, _ = admin_and_employee(db)
        location = make_location(db)
        db.commit()
        body = self.schedule_body(location, [])
        body["employee_ids"] = ["missing"]

        response = client.post("/api/schedules", json=body, headers=auth_headers(admin))

        assert response.json() == {"msg": "One or more assigned employees do not exist"}

    def test_visibility(self, client, db):
        admin, employee = admin_and_employee(db)
        other = make_user(db, name="Otto Other", phone=None)
        location = make_location(db)
        mine = make_schedule(db, location, [employee])
        theirs = make_schedule(db, location, [other], title="Other shift")
        db.commit()

        listed = client.get("/api/schedules", headers=auth_headers(employee)).json()
        assert [item["id"] for item in listed] == [mine.id]
        assert client.get(f"/api/schedules/{theirs.id}", headers=auth_headers(employee)).status_code == 403
        assert len(client.get("/api/schedules", headers=auth_headers(admin)).json()) == 2

    def test_update_sends_change_notice(self, client, db, email_sender):
        admin, employee = admin_and_employee(db)
        location = make_location(db)
        schedule = make_schedule(db, location, [employee])
        db.commit()

        response = client.put(
            f"/api/schedules/{schedule.id}", json={"title": "Late inventory"}, headers=auth_headers(admin)
        )

        assert response.json()["title"] == "Late inventory"
        assert email_sender.sent[-1][1] == "Schedule updated"

    def test_status_lifecycle(self, client, db):
        admin, employee = admin_and_employee(db)
        schedule = make_schedule(db, make_location(db), [employee])
        db.commit()
        url = f"/api/schedules/{schedule.id}/status"

        skipped = client.put(url, json={"status": "completed"}, headers=auth_headers(admin))
        assert skipped.status_code == 400

        assert client.put(url, json={"status": "in-progress"}, headers=auth_headers(admin)).json()["status"] == "in-progress"
        assert client.put(url, json={"status": "completed"}, headers=auth_headers(admin)).json()["status"] == "completed"
        reopened = client.put(url, json={"status": "scheduled"}, headers=auth_headers(admin))
        assert reopened.status_code == 400

    def test_finished_schedules_are_read_only(self, client, db):
        admin, employee = admin_and_employee(db)
        schedule = make_schedule(db, make_location(db), [employee], status="completed")
        db.commit()

        response = client.put(f"/api/schedules/{schedule.id}", json={"title": "Redo"}, headers=auth_headers(admin))

        assert response.status_code == 400
        assert response.json() == {"msg": "Cannot edit a completed schedule"}

    def test_delete(self, client, db):
        admin, employee = admin_and_employee(db)
        schedule = make_schedule(db, make_location(db), [employee])
        db.commit()

        response = client.delete(f"/api/schedules/{schedule.id}", headers=auth_headers(admin))

        assert response.json() == {"msg": "Schedule removed"}
        db.expire_all()
        assert db.query(Schedule).count() == 0


class TestAbsences:
    def test_request_and_review(self, client, db, email_sender):
        admin, employee = admin_and_employee(db)
        schedule = make_schedule(db, make_location(db), [employee])
        db.commit()
        day = schedule.date.isoformat()

        created = client.post(
            "/api/absences",
            json={"start_date": day, "end_date": day, "reason": "Flu", "type": "sick", "schedule_id": schedule.id},
            headers=auth_headers(employee),
        )
        assert created.status_code == 200
        absence = created.json()
        assert (absence["status"], absence["replacement_needed"]) == ("pending", True)
        assert any(to == admin.email for to, _, _ in email_sender.sent)

        approved = client.put(f"/api/absences/{absence['id']}/approve", headers=auth_headers(admin))
        assert approved.json()["status"] == "approved"
        assert approved.json()["reviewed_by"] == admin.id

        again = client.put(f"/api/absences/{absence['id']}/approve", headers=auth_headers(admin))
        assert again.status_code == 400
        assert again.json() == {"msg": "Absence is already approved"}

        completed = client.put(f"/api/absences/{absence['id']}/complete", headers=auth_headers(admin))
        assert completed.json()["status"] == "completed"

    def test_not_assigned_to_schedule(self, client, db):
        _, employee = admin_and_employee(db)
        schedule = make_schedule(db, make_location(db), [])
        db.commit()
        day = schedule.date.isoformat()

        response = client.post(
            "/api/absences",
            json={"start_date": day, "end_date": day, "reason": "Flu", "schedule_id": schedule.id},
            headers=auth_headers(employee),
        )

        assert response.json() == {"msg": "You are not assigned to this schedule"}

    def test_employees_cannot_review(self, client, db):
        _, employee = admin_and_employee(db)
        absence = Absence(
            user_id=employee.id, start_date=local_today(), end_date=local_today(), reason="Trip", type="vacation"
        )
        db.add(absence)
        db.commit()

        response = client.put(f"/api/absences/{absence.id}/reject", headers=auth_headers(employee))

        assert response.status_code == 403


class TestHourTracking:
    def test_clock_in_and_out(self, client, db, maps):
        _, employee = admin_and_employee(db)
        schedule = make_schedule(db, make_location(db), [employee])
        db.commit()
        headers = auth_headers(employee)

        clocked_in = client.post("/api/hour-tracking/clock-in", json={"schedule_id": schedule.id}, headers=headers)
        assert clocked_in.status_code == 200
        record = clocked_in.json()
        assert record["status"] == "active"
        assert record["traffic_snapshot"]["trafficLevel"] == 1
        assert client.get("/api/hour-tracking/active", headers=headers).json()["id"] == record["id"]

        duplicate = client.post("/api/hour-tracking/clock-in", json={"schedule_id": schedule.id}, headers=headers)
        assert duplicate.status_code == 400
        assert duplicate.json() == {"msg": "Already clocked in for this schedule today"}

        clocked_out = client.post(f"/api/hour-tracking/clock-out/{record['id']}", json={"notes": "done"}, headers=headers)
        assert clocked_out.json()["status"] == "completed"
        assert clocked_out.json()["total_hours"] >= 0
        assert client.get("/api/hour-tracking/active", headers=headers).json() is None

    def test_must_be_assigned(self, client, db):
        _, employee = admin_and_employee(db)
        schedule = make_schedule(db, make_location(db), [])
        db.commit()

        response = client.post(
            "/api/hour-tracking/clock-in", json={"schedule_id": schedule.id}, headers=auth_headers(employee)
        )

        assert response.status_code == 403


class TestNotifications:
    def test_send_and_read(self, client, db, email_sender):
        admin, employee = admin_and_employee(db)

        sent = client.post(
            "/api/notifications",
            json={"recipient_ids": [employee.id], "channel": "email", "subject": "Heads up", "content": "Parking closed"},
            headers=auth_headers(admin),
        )
        assert sent.json() == {"total": 1, "sent": 1, "failed": 0}
        assert email_sender.sent == [("alice.martin@example.com", "Heads up", "Parking closed")]

        [notification] = client.get("/api/notifications", headers=auth_headers(employee)).json()
        assert notification["status"] == "sent"

        read = client.put(f"/api/notifications/{notification['id']}/read", headers=auth_headers(employee))
        assert read.json()["status"] == "read"
        assert read.json()["read_at"] is not None

    def test_cannot_read_someone_elses(self, client, db):
        admin, employee = admin_and_employee(db)
        notification = Notification(
            channel="email", recipient_id=admin.id, subject="s", content="c", relation="other", status="sent"
        )
        db.add(notification)
        db.commit()

        response = client.put(f"/api/notifications/{notification.id}/read", headers=auth_headers(employee))

        assert response.status_code == 403


class TestDashboardAndBriefing:
    def test_stats(self, client, db):
        admin, employee = admin_and_employee(db)
        make_schedule(db, make_location(db), [employee], day=local_today())
        db.add(Absence(user_id=employee.id, start_date=local_today(), end_date=local_today(), reason="x", type="other"))
        db.commit()

        stats = client.get("/api/dashboard/stats", headers=auth_headers(admin)).json()

        assert stats == {
            "users": 2,
            "schedulesToday": 1,
            "pendingAbsences": 1,
            "activeClockIns": 0,
            "notificationsSentToday": 0,
        }
        assert client.get("/api/dashboard/stats", headers=auth_headers(employee)).status_code == 403

    def test_daily_briefing(self, client, db):
        _, employee = admin_and_employee(db)
        make_schedule(db, make_location(db), [employee], day=local_today(), title="Front desk")
        db.commit()

        briefing = client.get("/api/daily-briefing", headers=auth_headers(employee)).json()

        assert briefing["date"] == local_today().isoformat()
        assert [item["title"] for item in briefing["schedules"]] == ["Front desk"]
        assert briefing["schedules"][0]["traffic"]["trafficLevel"] == 1
        assert "pending_absences" not in briefing


class TestHourReports:
    def add_record(self, db, user, schedule, hours, status="completed"):
        start = datetime.combine(local_today(), time(9), tzinfo=timezone.utc)
        record = HourTracking(
            user_id=user.id,
            schedule_id=schedule.id,
            date=local_today(),
            clock_in=start,
            clock_out=start + timedelta(hours=hours) if status == "completed" else None,
            total_hours=hours if status == "completed" else None,
            status=status,
        )
        db.add(record)
        return record

    def test_summary_and_report(self, client, db):
        admin, employee = admin_and_employee(db)
        seller = make_user(db, name="Sam Seller", phone=None, department="Sales")
        schedule = make_schedule(db, make_location(db), [employee, seller], day=local_today())
        self.add_record(db, employee, schedule, 2.5)
        self.add_record(db, employee, schedule, 1.25)
        self.add_record(db, seller, schedule, 4.0)
        self.add_record(db, admin, schedule, 8.0, status="active")
        db.commit()
        today = local_today().isoformat()

        summary = client.get("/api/hour-tracking/user/summary", headers=auth_headers(employee)).json()
        assert (summary["totalHours"], summary["recordCount"], summary["dailyHours"]) == (3.75, 2, {today: 3.75})
        assert summary["startDate"] <= today <= summary["endDate"]

        report = client.get(
            "/api/hour-tracking/admin/report", params={"department": "Operations"}, headers=auth_headers(admin)
        ).json()
        [entry] = report["userHours"]
        assert (entry["user"]["name"], entry["totalHours"], len(entry["records"])) == ("Alice Martin", 3.75, 2)

        everyone = client.get("/api/hour-tracking/admin/report", headers=auth_headers(admin)).json()
        assert [entry["user"]["name"] for entry in everyone["userHours"]] == ["Alice Martin", "Sam Seller"]

    def test_report_is_admin_only(self, client, db):
        _, employee = admin_and_employee(db)

        assert client.get("/api/hour-tracking/admin/report", headers=auth_headers(employee)).status_code == 403

    def test_inverted_range(self, client, db):
        _, employee = admin_and_employee(db)

        response = client.get(
            "/api/hour-tracking/user/summary",
            params={"start": "2026-10-20", "end": "2026-10-01"},
            headers=auth_headers(employee),
        )

        assert response.json() == {"msg": "start must not be after end"}


class TestTraffic:
    def test_commute_needs_default_location(self, client, db):
        _, employee = admin_and_employee(db)

        response = client.get("/api/traffic/commute", headers=auth_headers(employee))

        assert response.status_code == 400
        assert response.json() == {"msg": NO_DEFAULT_LOCATION}

    def test_commute(self, client, db):
        _, employee = admin_and_employee(db)
        home = make_location(db, name="Home", latitude=45.45, longitude=-73.6)
        employee.default_location_id = home.id
        make_schedule(db, make_location(db), [employee], day=local_today(), title="Front desk")
        db.commit()

        body = client.get("/api/traffic/commute", headers=auth_headers(employee)).json()

        assert body["defaultLocation"]["name"] == "Home"
        [entry] = body["trafficInfo"]
        assert entry["scheduleTitle"] == "Front desk"
        assert (entry["traffic"]["travelTimeMinutes"], entry["traffic"]["suggestedDepartureTime"]) == (23, "08:27")

    def test_route_between_locations(self, client, db):
        _, employee = admin_and_employee(db)
        home = make_location(db, name="Home", latitude=45.45, longitude=-73.6)
        office = make_location(db)
        db.commit()
        headers = auth_headers(employee)

        route = client.get(
            "/api/traffic/route", params={"origin_id": home.id, "destination_id": office.id}, headers=headers
        ).json()
        assert (route["origin"]["name"], route["destination"]["name"]) == ("Home", "Head Office")
        assert route["traffic"]["distance"] == 12.4

        missing = client.get(
            "/api/traffic/route", params={"origin_id": home.id, "destination_id": "nope"}, headers=headers
        )
        assert (missing.status_code, missing.json()) == (404, {"msg": "One or both locations not found"})

    def test_route_to_location_from_default(self, client, db):
        _, employee = admin_and_employee(db)
        home = make_location(db, name="Home", latitude=45.45, longitude=-73.6)
        office = make_location(db)
        employee.default_location_id = home.id
        db.commit()
        headers = auth_headers(employee)

        assert client.get(f"/api/traffic/location/{office.id}", headers=headers).json()["origin"]["id"] == home.id
        missing = client.get("/api/traffic/location/nope", headers=headers)
        assert missing.json() == {"msg": "Destination location not found"}

    def test_location_traffic(self, client, db, maps):
        _, employee = admin_and_employee(db)
        office = make_location(db)
        db.commit()

        body = client.get(f"/api/locations/{office.id}/traffic", headers=auth_headers(employee)).json()

        assert body["location"]["name"] == "Head Office"
        assert (body["traffic"]["trafficLevel"], body["traffic"]["currentSpeed"]) == (1, 30.0)
        assert maps.traffic_calls == [(45.5017, -73.5673)]

    def test_provider_failure_is_a_server_error(self, client, db, maps):
        _, employee = admin_and_employee(db)
        office = make_location(db)
        db.commit()
        maps.error = ProviderTimeout("slow")

        response = client.get(f"/api/locations/{office.id}/traffic", headers=auth_headers(employee))

        assert (response.status_code, response.json()) == (500, {"msg": "Server error"})


class TestDailyBriefingSend:
    def test_opt_in_then_send(self, client, db, email_sender):
        _, employee = admin_and_employee(db)
        headers = auth_headers(employee)

        refused = client.post("/api/daily-briefing/send", json={}, headers=headers)
        assert (refused.status_code, refused.json()) == (400, {"msg": "User has not enabled daily briefing"})

        prefs = client.put("/api/daily-briefing/preferences", json={"dailyBriefing": True}, headers=headers).json()
        assert (prefs["dailyBriefing"], prefs["briefingTime"]) == (True, "07:00")

        sent = client.post("/api/daily-briefing/send", json={"notificationType": "email"}, headers=headers).json()
        assert (sent["msg"], sent["sent"]) == ("Daily briefing sent successfully", 1)

        db.expire_all()
        row = db.query(Notification).one()
        assert (row.relation, row.recipient_id) == ("daily-briefing", employee.id)
        assert email_sender.sent[-1][1] == f"Daily Briefing - {local_today().isoformat()}"

    def test_targeting_someone_else(self, client, db):
        admin, employee = admin_and_employee(db)
        employee.notification_preferences = {"email": True, "whatsapp": False, "dailyBriefing": True}
        db.commit()

        forbidden = client.post("/api/daily-briefing/send", json={"userId": admin.id}, headers=auth_headers(employee))
        assert (forbidden.status_code, forbidden.json()) == (403, {"msg": "Not authorized"})

        missing = client.post("/api/daily-briefing/send", json={"userId": "nope"}, headers=auth_headers(admin))
        assert missing.status_code == 404

        sent = client.post("/api/daily-briefing/send", json={"userId": employee.id}, headers=auth_headers(admin))
        assert sent.json()["total"] == 1


class TestLanguageSettings:
    def test_defaults_follow_preferred_language(self, client, db):
        _, employee = admin_and_employee(db)

        settings = client.get("/api/language-settings", headers=auth_headers(employee)).json()

        assert settings == {"preferredLanguage": "en", "voiceRecognitionLanguage": "en-US", "voiceRecognitionExplicit": False}

    def test_update_voice_language(self, client, db):
        _, employee = admin_and_employee(db)
        headers = auth_headers(employee)

        unsupported = client.put("/api/language-settings", json={"voiceRecognitionLanguage": "xx-XX"}, headers=headers)
        assert unsupported.json() == {"msg": "Unsupported voice recognition language"}

        updated = client.put(
            "/api/language-settings",
            json={"preferredLanguage": "fr", "voiceRecognitionLanguage": "es-ES"},
            headers=headers,
        ).json()
        assert (updated["preferredLanguage"], updated["voiceRecognitionLanguage"]) == ("fr", "es-ES")
        db.expire_all()
        assert db.get(User, employee.id).voice_language == "es-ES"

    def test_language_lists_are_public(self, client):
        voice = client.get("/api/language-settings/voice-recognition-languages").json()
        everything = client.get("/api/language-settings/supported-languages").json()

        assert {"code": "fr-FR", "name": "French", "region": "France"} in voice
        assert len(everything) > len(voice)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_unknown_route_uses_msg_envelope(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"msg": "Not Found"}
