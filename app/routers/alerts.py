# app/routers/alerts.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.plate import PlateAlert
from app.schemas.alert import PlateAlertOut
from app.services.alert_service import resolve_alert
from typing import Optional

router = APIRouter()

@router.get("/alerts", response_model=list[PlateAlertOut], summary="Plate alerts, filterable by type")
def get_all_alerts(
    alert_type: Optional[str] = None,
    severity: Optional[str] = None,
    include_resolved: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """Open alerts by default. Filter by alert_type or severity."""
    q = db.query(PlateAlert)
    if alert_type:
        q = q.filter(PlateAlert.alert_type == alert_type)
    if severity:
        q = q.filter(PlateAlert.severity == severity)
    if not include_resolved:
        q = q.filter(PlateAlert.resolved_at.is_(None))
    return q.order_by(PlateAlert.first_detected_at.desc()).limit(limit).all()


@router.put("/alerts/{alert_id}/resolve", response_model=PlateAlertOut)
def resolve(alert_id: int, db: Session = Depends(get_db)):
    alert = resolve_alert(db, alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return alert
