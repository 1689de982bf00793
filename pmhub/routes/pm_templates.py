import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_tenant, get_current_user, require_permissions
from ..models.models import Tenant, User
from ..schemas.pm import (
    PMTemplateCreate,
    PMTemplateResponse,
    PMTemplateUpdate,
    PMTemplateWithCountResponse,
)
from ..services import pm_templates

router = APIRouter(prefix="/pm-templates", tags=["pm"])


@router.get("", response_model=List[PMTemplateWithCountResponse])
def list_pm_templates(
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    """List templates with the number of schedules created from each"""
    rows = pm_templates.list_templates_with_schedule_count(db, tenant.id, category)
    return [
        PMTemplateWithCountResponse.model_validate(row["template"]).model_copy(
            update={"schedule_count": row["schedule_count"]}
        )
        for row in rows
    ]


@router.get("/{template_id}", response_model=PMTemplateResponse)
def get_pm_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    return pm_templates.require_template(db, tenant.id, template_id)


@router.post("", response_model=PMTemplateResponse, status_code=201)
def create_pm_template(
    payload: PMTemplateCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:write")),
):
    template = pm_templates.create_template(db, tenant.id, **payload.dict(), actor_id=user.id)
    db.commit()
    db.refresh(template)
    return template


@router.patch("/{template_id}", response_model=PMTemplateResponse)
def update_pm_template(
    template_id: uuid.UUID,
    payload: PMTemplateUpdate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:write")),
):
    template = pm_templates.update_template(
        db, tenant.id, template_id, payload.dict(exclude_unset=True), actor_id=user.id
    )
    db.commit()
    db.refresh(template)
    return template


@router.delete("/{template_id}", status_code=204)
def delete_pm_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:write")),
):
    """Soft delete; schedules created from the template keep their copied values"""
    pm_templates.delete_template(db, tenant.id, template_id, actor_id=user.id)
    db.commit()
    return Response(status_code=204)
