"""
HTTP surface tests.

Exercises auth and permission gating, the mapping of domain errors to status codes,
and the request/response shapes of the PM endpoints. Dates are derived from the real
clock because the API always reads "now" itself.
"""

import uuid

import pytest

import pmhub.main
from conftest import PM_VIEWER_PERMISSIONS, auth_headers
from pmhub.services.recurrence import compute_next_due_date
from pmhub.services.time_rules import local_today


def _today():
    return local_today(None, "UTC")


def _create(client, **overrides):
    body = {"name": "Inspect rooftop unit", "frequency": "weekly", "day_of_week": 1}
    body.update(overrides)
    return client.post("/pm-schedules", json=body)


# =============================================================================
# AUTH
# =============================================================================


class TestAuth:
    def test_login_and_me(self, client, user):
        resp = client.post("/auth/login", json={"identifier": "pm.admin", "password": "s3cret-pass"})
        assert resp.status_code == 200
        token = resp.json()["access_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        body = me.json()
        assert body["username"] == "pm.admin"
        assert body["tenant_id"] == str(user.tenant_id)
        assert "pm:write" in body["permissions"]

    def test_login_by_email(self, client, user):
        resp = client.post("/auth/login", json={"identifier": "pm.admin@example.com", "password": "s3cret-pass"})
        assert resp.status_code == 200

    def test_wrong_password(self, client, user):
        resp = client.post("/auth/login", json={"identifier": "pm.admin", "password": "nope"})
        assert resp.status_code == 401

    def test_refresh_issues_new_access_token(self, client, user):
        tokens = client.post("/auth/login", json={"identifier": "pm.admin", "password": "s3cret-pass"}).json()
        resp = client.post("/auth/refresh", params={"token": tokens["refresh_token"]})
        assert resp.status_code == 200
        assert resp.json()["access_token"]

    def test_refresh_token_cannot_call_api(self, client, user):
        tokens = client.post("/auth/login", json={"identifier": "pm.admin", "password": "s3cret-pass"}).json()
        resp = client.get("/pm-schedules", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
        assert resp.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/pm-schedules").status_code == 401

    def test_viewer_can_read_but_not_write(self, client, make_user):
        viewer = make_user(username="pm.viewer", permissions=PM_VIEWER_PERMISSIONS)
        headers = auth_headers(viewer)
        assert client.get("/pm-schedules", headers=headers).status_code == 200
        assert _create(client, asset_id=str(uuid.uuid4())).status_code == 401
        resp = client.post(
            "/pm-schedules",
            json={"name": "x", "frequency": "daily", "asset_id": str(uuid.uuid4())},
            headers=headers,
        )
        assert resp.status_code == 403

    def test_area_access_is_required(self, client, make_user):
        blocked = make_user(username="pm.blocked", permissions={"pm:access": False, "pm:read": True})
        assert client.get("/pm-schedules", headers=auth_headers(blocked)).status_code == 403

    def test_request_id_is_echoed(self, admin_client):
        resp = admin_client.get("/pm-schedules", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"


# =============================================================================
# SCHEDULE LIFECYCLE
# =============================================================================


class TestScheduleLifecycle:
    def test_create_returns_201_with_computed_due_date(self, admin_client, asset):
        resp = _create(admin_client, asset_id=str(asset.id))
        assert resp.status_code == 201
        body = resp.json()
        expected = compute_next_due_date("weekly", 1, reference_date=_today())
        assert body["next_due_date"] == expected.isoformat()
        assert body["is_active"] is True
        assert body["last_generated_at"] is None

    @pytest.mark.parametrize(
        "overrides,code",
        [
            ({}, "invalid_target"),
            ({"name": "   "}, "invalid_name"),
            ({"day_of_week": 9}, "invalid_recurrence"),
        ],
    )
    def test_validation_errors_map_to_400(self, admin_client, asset, location, overrides, code):
        if code != "invalid_target":
            overrides["asset_id"] = str(asset.id)
        else:
            overrides.update(asset_id=str(asset.id), location_id=str(location.id))
        resp = _create(admin_client, **overrides)
        assert resp.status_code == 400
        assert resp.json()["code"] == code

    def test_unknown_asset_maps_to_404(self, admin_client):
        resp = _create(admin_client, asset_id=str(uuid.uuid4()))
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Asset not found", "code": "not_found", "field": "asset_id"}

    def test_missing_frequency_is_422(self, admin_client, asset):
        resp = admin_client.post("/pm-schedules", json={"name": "x", "asset_id": str(asset.id)})
        assert resp.status_code == 422

    def test_null_frequency_on_update_is_422(self, admin_client, asset):
        schedule_id = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        resp = admin_client.patch(f"/pm-schedules/{schedule_id}", json={"frequency": None})
        assert resp.status_code == 422

    def test_update_recomputes_on_frequency_change(self, admin_client, asset):
        schedule_id = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        resp = admin_client.patch(f"/pm-schedules/{schedule_id}", json={"frequency": "monthly", "day_of_month": 31})
        assert resp.status_code == 200
        expected = compute_next_due_date("monthly", None, 31, reference_date=_today())
        assert resp.json()["next_due_date"] == expected.isoformat()

    def test_activate_and_deactivate(self, admin_client, asset):
        schedule_id = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        resp = admin_client.post(f"/pm-schedules/{schedule_id}/deactivate")
        assert resp.json()["is_active"] is False
        resp = admin_client.post(f"/pm-schedules/{schedule_id}/activate")
        assert resp.json()["is_active"] is True

    def test_complete_and_history(self, admin_client, asset, user, make_work_order):
        created = _create(admin_client, asset_id=str(asset.id)).json()
        work_order = make_work_order()

        resp = admin_client.post(
            f"/pm-schedules/{created['id']}/complete",
            json={"ticket_id": str(work_order.id), "notes": "Belts replaced", "checklist_results": {"belts": "replaced"}},
        )
        assert resp.status_code == 201
        completion = resp.json()
        assert completion["scheduled_date"] == created["next_due_date"]
        assert completion["completed_date"] == _today().isoformat()
        assert completion["completed_by"] == str(user.id)

        detail = admin_client.get(f"/pm-schedules/{created['id']}").json()
        expected = compute_next_due_date("weekly", 1, reference_date=_today())
        assert detail["next_due_date"] == expected.isoformat()
        assert detail["last_generated_at"] is not None
        assert detail["asset_name"] == "Rooftop HVAC Unit"
        assert [c["id"] for c in detail["completions"]] == [completion["id"]]

        history = admin_client.get(f"/pm-schedules/{created['id']}/completions").json()
        assert [c["notes"] for c in history] == ["Belts replaced"]

    def test_complete_without_body(self, admin_client, asset):
        schedule_id = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        assert admin_client.post(f"/pm-schedules/{schedule_id}/complete").status_code == 201

    def test_complete_with_unknown_work_order_is_404_and_writes_nothing(self, admin_client, asset):
        created = _create(admin_client, asset_id=str(asset.id)).json()
        resp = admin_client.post(f"/pm-schedules/{created['id']}/complete", json={"ticket_id": str(uuid.uuid4())})
        assert resp.status_code == 404
        assert admin_client.get(f"/pm-schedules/{created['id']}/completions").json() == []
        assert admin_client.get(f"/pm-schedules/{created['id']}").json()["next_due_date"] == created["next_due_date"]

    def test_delete_is_204_then_404(self, admin_client, asset):
        schedule_id = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        assert admin_client.delete(f"/pm-schedules/{schedule_id}").status_code == 204
        assert admin_client.get(f"/pm-schedules/{schedule_id}").status_code == 404
        assert admin_client.delete(f"/pm-schedules/{schedule_id}").status_code == 404

    def test_other_tenant_sees_nothing(self, client, admin_client, asset, make_tenant, make_user):
        schedule_id = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        other = make_tenant(name="Other Co")
        outsider = make_user(username="outsider", tenant_id=other.id)
        headers = auth_headers(outsider)

        assert client.get(f"/pm-schedules/{schedule_id}", headers=headers).status_code == 404
        assert client.get("/pm-schedules", headers=headers).json() == []


# =============================================================================
# PROJECTIONS
# =============================================================================


class TestProjectionEndpoints:
    def test_due_today_and_overdue(self, admin_client, asset):
        today = _today()
        due = _create(admin_client, name="Due now", asset_id=str(asset.id)).json()["id"]
        admin_client.patch(f"/pm-schedules/{due}", json={"next_due_date": today.isoformat()})
        late = _create(admin_client, name="Late", asset_id=str(asset.id)).json()["id"]
        admin_client.patch(f"/pm-schedules/{late}", json={"next_due_date": "2020-01-01"})

        assert [s["id"] for s in admin_client.get("/pm-schedules/due").json()] == [due]
        assert [s["id"] for s in admin_client.get("/pm-schedules/due", params={"type": "overdue"}).json()] == [late]
        assert admin_client.get("/pm-schedules/due", params={"type": "later"}).status_code == 422

    def test_stats(self, admin_client, asset):
        _create(admin_client, asset_id=str(asset.id))
        body = admin_client.get("/pm-schedules/stats").json()
        assert body == {"total": 1, "active": 1, "due_today": 0, "overdue": 0, "completed_this_month": 0}

    def test_calendar(self, admin_client, location):
        schedule_id = _create(admin_client, location_id=str(location.id)).json()["id"]
        admin_client.patch(f"/pm-schedules/{schedule_id}", json={"next_due_date": "2026-07-04"})

        items = admin_client.get("/pm-schedules/calendar", params={"month": 7, "year": 2026}).json()
        assert items == [{
            "schedule_id": schedule_id,
            "name": "Inspect rooftop unit",
            "target_type": "location",
            "target_name": "Building A",
            "frequency": "weekly",
            "due_date": "2026-07-04",
        }]
        assert admin_client.get("/calendar/pm", params={"month": 7, "year": 2026}).json() == items

    @pytest.mark.parametrize("params", [{"month": 13, "year": 2026}, {"month": 0, "year": 2026}, {"month": 1, "year": 1999}])
    def test_calendar_bounds(self, admin_client, params):
        assert admin_client.get("/pm-schedules/calendar", params=params).status_code == 400

    def test_by_target_and_filters(self, admin_client, asset, location):
        on_asset = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        on_site = _create(admin_client, frequency="daily", location_id=str(location.id)).json()["id"]

        assert [s["id"] for s in admin_client.get(f"/pm-schedules/by-asset/{asset.id}").json()] == [on_asset]
        assert [s["id"] for s in admin_client.get(f"/pm-schedules/by-location/{location.id}").json()] == [on_site]
        rows = admin_client.get("/pm-schedules", params={"frequency": "daily"}).json()
        assert [r["id"] for r in rows] == [on_site]
        assert rows[0]["location_name"] == "Building A"

    def test_active_listing(self, admin_client, asset):
        running = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        paused = _create(admin_client, asset_id=str(asset.id)).json()["id"]
        admin_client.post(f"/pm-schedules/{paused}/deactivate")
        assert [s["id"] for s in admin_client.get("/pm-schedules/active").json()] == [running]


# =============================================================================
# TEMPLATES
# =============================================================================


class TestTemplateEndpoints:
    def test_crud(self, admin_client):
        resp = admin_client.post("/pm-templates", json={"name": "Boiler service", "category": "hvac", "estimated_duration_hours": 2})
        assert resp.status_code == 201
        template_id = resp.json()["id"]

        resp = admin_client.patch(f"/pm-templates/{template_id}", json={"description": "Annual burner check"})
        assert resp.json()["description"] == "Annual burner check"

        listing = admin_client.get("/pm-templates", params={"category": "hvac"}).json()
        assert [(t["id"], t["schedule_count"]) for t in listing] == [(template_id, 0)]

        assert admin_client.delete(f"/pm-templates/{template_id}").status_code == 204
        assert admin_client.get(f"/pm-templates/{template_id}").status_code == 404

    def test_invalid_duration_is_400(self, admin_client):
        resp = admin_client.post("/pm-templates", json={"name": "Boiler service", "estimated_duration_hours": 120})
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_template"

    def test_rejections_log_a_request_level_event(self, admin_client, monkeypatch):
        events = []

        class _Recorder:
            def warning(self, event, **kw):
                events.append((event, kw))

        monkeypatch.setattr(pmhub.main, "logger", _Recorder())
        resp = admin_client.post("/pm-templates", json={"name": "Boiler service", "estimated_duration_hours": 120})

        assert resp.status_code == 400
        assert [(event, kw["code"]) for event, kw in events] == [("pm_request_rejected", "invalid_template")]

    def test_schedule_from_template(self, admin_client, asset, template):
        resp = admin_client.post(
            "/pm-schedules",
            json={"template_id": str(template.id), "frequency": "quarterly", "month_of_year": 1, "asset_id": str(asset.id)},
        )
        assert resp.status_code == 201
        assert resp.json()["name"] == "Filter Replacement"
        listing = admin_client.get("/pm-templates").json()
        assert listing[0]["schedule_count"] == 1
