import uuid
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from ..models.models import Asset, Location
from .errors import InvalidTargetError, NotFoundError


def validate_target_shape(asset_id: Optional[uuid.UUID], location_id: Optional[uuid.UUID]) -> None:
    """Exactly one of asset_id / location_id must be set."""
    if not asset_id and not location_id:
        raise InvalidTargetError("Either asset_id or location_id is required")
    if asset_id and location_id:
        raise InvalidTargetError("Cannot specify both asset_id and location_id")


def ensure_target_exists(
    db: Session,
    tenant_id: uuid.UUID,
    *,
    asset_id: Optional[uuid.UUID] = None,
    location_id: Optional[uuid.UUID] = None,
) -> None:
    if asset_id:
        found = db.query(Asset.id).filter(
            Asset.id == asset_id,
            Asset.tenant_id == tenant_id,
            Asset.deleted_at.is_(None),
        ).first()
        if not found:
            raise NotFoundError("Asset not found", field="asset_id")
    if location_id:
        found = db.query(Location.id).filter(
            Location.id == location_id,
            Location.tenant_id == tenant_id,
            Location.deleted_at.is_(None),
        ).first()
        if not found:
            raise NotFoundError("Location not found", field="location_id")


def resolve_target_names(
    db: Session,
    tenant_id: uuid.UUID,
    asset_ids: Iterable[uuid.UUID],
    location_ids: Iterable[uuid.UUID],
) -> Tuple[Dict[uuid.UUID, str], Dict[uuid.UUID, str]]:
    """Batch lookup of asset and location display names."""
    asset_ids = {a for a in asset_ids if a}
    location_ids = {loc for loc in location_ids if loc}
    asset_names: Dict[uuid.UUID, str] = {}
    location_names: Dict[uuid.UUID, str] = {}
    if asset_ids:
        rows = db.query(Asset.id, Asset.name).filter(Asset.tenant_id == tenant_id, Asset.id.in_(asset_ids)).all()
        asset_names = {row.id: row.name for row in rows}
    if location_ids:
        rows = db.query(Location.id, Location.name).filter(Location.tenant_id == tenant_id, Location.id.in_(location_ids)).all()
        location_names = {row.id: row.name for row in rows}
    return asset_names, location_names
