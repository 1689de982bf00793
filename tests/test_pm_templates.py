"""Tests for the PM template catalog service."""

import uuid
from datetime import date, timedelta

import pytest

from conftest import NOW
from pmhub.models.models import AuditLog
from pmhub.services.errors import InvalidNameError, InvalidTemplateError, NotFoundError
from pmhub.services.pm_schedules import create_schedule, delete_schedule
from pmhub.services.pm_templates import (
    create_template,
    delete_template,
    get_template,
    list_templates,
    list_templates_with_schedule_count,
    update_template,
)


class TestCreateTemplate:
    def test_create(self, db, tenant):
        template = create_template(
            db, tenant.id,
            name=" Belt inspection ",
            category="mechanical",
            checklist={"items": ["Check tension"]},
            estimated_duration_hours=0.5,
        )
        db.commit()

        assert template.name == "Belt inspection"
        assert template.category == "mechanical"
        assert float(template.estimated_duration_hours) == 0.5
        assert db.query(AuditLog).filter(AuditLog.entity_id == template.id).one().action == "CREATE"

    @pytest.mark.parametrize("name", ["", "  ", "y" * 201])
    def test_invalid_name(self, db, tenant, name):
        with pytest.raises(InvalidNameError):
            create_template(db, tenant.id, name=name)

    @pytest.mark.parametrize("hours", [0, -1, 100, 250.5])
    def test_invalid_duration(self, db, tenant, hours):
        with pytest.raises(InvalidTemplateError):
            create_template(db, tenant.id, name="Belt inspection", estimated_duration_hours=hours)


class TestUpdateAndDelete:
    def test_partial_update(self, db, tenant, template):
        update_template(db, tenant.id, template.id, {"category": "  ", "description": "New steps"})
        assert template.category is None
        assert template.description == "New steps"
        assert template.name == "Filter Replacement"

    def test_update_and_delete_stamp_aware_utc_times(self, db, tenant, template):
        update_template(db, tenant.id, template.id, {"description": "New steps"})
        assert template.updated_at.tzinfo is not None

        delete_template(db, tenant.id, template.id)
        assert template.deleted_at.tzinfo is not None
        assert template.deleted_at.utcoffset() == timedelta(0)

    def test_name_errors_name_the_template(self, db, tenant):
        with pytest.raises(InvalidNameError, match="Template name is required"):
            create_template(db, tenant.id, name=" ")

    def test_update_rejects_blank_name(self, db, tenant, template):
        with pytest.raises(InvalidNameError):
            update_template(db, tenant.id, template.id, {"name": ""})

    def test_soft_delete(self, db, tenant, template):
        delete_template(db, tenant.id, template.id)
        db.commit()
        assert get_template(db, tenant.id, template.id) is None
        with pytest.raises(NotFoundError):
            delete_template(db, tenant.id, template.id)

    def test_other_tenant_cannot_see_template(self, db, template, make_tenant):
        other = make_tenant(name="Other Co")
        assert get_template(db, other.id, template.id) is None
        with pytest.raises(NotFoundError):
            update_template(db, other.id, template.id, {"name": "Hijack"})

    def test_deleted_template_cannot_seed_schedules(self, db, tenant, asset, template):
        delete_template(db, tenant.id, template.id)
        with pytest.raises(NotFoundError):
            create_schedule(db, tenant.id, frequency="monthly", template_id=template.id, asset_id=asset.id, now=NOW)


class TestListing:
    def test_filter_by_category(self, db, tenant, template):
        create_template(db, tenant.id, name="Roof drain clearing", category="plumbing")
        db.commit()

        assert [t.name for t in list_templates(db, tenant.id)] == ["Filter Replacement", "Roof drain clearing"]
        assert [t.name for t in list_templates(db, tenant.id, category="plumbing")] == ["Roof drain clearing"]

    def test_schedule_counts_ignore_deleted_schedules(self, db, tenant, asset, template):
        kept = create_schedule(db, tenant.id, frequency="monthly", template_id=template.id, asset_id=asset.id, now=NOW)
        dropped = create_schedule(db, tenant.id, frequency="weekly", template_id=template.id, asset_id=asset.id, now=NOW)
        delete_schedule(db, tenant.id, dropped.id)
        db.commit()

        [row] = list_templates_with_schedule_count(db, tenant.id)
        assert row["template"].id == template.id
        assert row["schedule_count"] == 1
        assert kept.next_due_date == date(2026, 2, 14)

    def test_unused_template_counts_zero(self, db, tenant, template):
        [row] = list_templates_with_schedule_count(db, tenant.id)
        assert row["schedule_count"] == 0
        assert list_templates_with_schedule_count(db, uuid.uuid4()) == []
