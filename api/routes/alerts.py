"""
Alert API Routes for the RadioCare chatbot.
"""

from typing import List, Dict, Any

from fastapi import APIRouter, HTTPException

from ..services import get_services

router = APIRouter()


@router.get("/alerts/{user_id}")
async def list_alerts(user_id: str) -> List[Dict[str, Any]]:
    """Clinician alerts raised for a user, newest first."""
    services = get_services()
    if not services.is_ready:
        raise HTTPException(status_code=503, detail="Alert service is not ready")
    alerts = await services.alert_manager.list_alerts(user_id)
    return [a.to_dict() for a in alerts]
