from __future__ import annotations

import hmac
from datetime import datetime
from typing import Literal, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app_logger import get_logger
from config import get_settings
from db.session import validate_db_compatibility
from reservations.engine import (
    approve_reservation,
    create_reservation,
    get_operating_hours,
    list_reservations,
    reject_reservation,
    update_operating_hours,
    upsert_facility,
)
from reservations.errors import ReservationError
from reservations.schema import (
    AdminRejectRequest,
    FacilityUpsertRequest,
    OperatingHoursUpdateRequest,
)

settings = get_settings()
logger = get_logger("api")

APP_NAME = settings.app_name
APP_VERSION = settings.app_version
API_KEY_HEADER = "X-API-Key"
ADMIN_API_KEY_HEADER = "X-Admin-API-Key"
USER_ID_HEADER = "X-User-Id"


def verify_api_key(x_api_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER)):
    if not x_api_key or not hmac.compare_digest(x_api_key, settings.reservations_api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key.")


def verify_admin_api_key(x_admin_api_key: Optional[str] = Header(default=None, alias=ADMIN_API_KEY_HEADER)):
    if not x_admin_api_key or not hmac.compare_digest(x_admin_api_key, settings.admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing admin API key.")


def current_user_id(x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER)) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


class HealthResponse(BaseModel):
    status: Literal["ok", "error"]
    service: str
    version: str


app = FastAPI(title=APP_NAME, version=APP_VERSION)


@app.on_event("startup")
def startup_checks():
    _ = settings.reservations_api_key
    _ = settings.admin_api_key
    _ = settings.database_url
    validate_db_compatibility()


@app.exception_handler(ReservationError)
def handle_reservation_error(_, exc: ReservationError):
    if exc.status_code >= 500:
        logger.error("Reservation request failed: %s (%s)", exc.message, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.get("/health/live", response_model=HealthResponse)
def health_live():
    return HealthResponse(status="ok", service=APP_NAME, version=APP_VERSION)


@app.get("/health/ready", response_model=HealthResponse)
def health_ready():
    try:
        validate_db_compatibility()
    except Exception as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return HealthResponse(status="ok", service=APP_NAME, version=APP_VERSION)


@app.post("/v1/facilities/{facility_id}/reservations", dependencies=[Depends(verify_api_key)])
def create_facility_reservation(
    facility_id: str,
    payload: dict = Body(...),
    user_id: str = Depends(current_user_id),
):
    result = create_reservation(facility_id, user_id, payload)
    return JSONResponse(status_code=200 if result["success"] else 409, content=result)


@app.get("/v1/facilities/{facility_id}/reservations", dependencies=[Depends(verify_api_key)])
def list_facility_reservations(
    facility_id: str,
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    include_pending: bool = Query(default=False, alias="includePending"),
    status: Optional[str] = None,
    household_id: Optional[str] = Query(default=None, alias="householdId"),
    _user_id: str = Depends(current_user_id),
):
    return JSONResponse(
        content=list_reservations(
            facility_id,
            start=start_date,
            end=end_date,
            include_pending=include_pending,
            status=status,
            household_id=household_id,
        )
    )


@app.get("/v1/facilities/{facility_id}/operating-hours", dependencies=[Depends(verify_api_key)])
def facility_operating_hours(facility_id: str):
    return JSONResponse(content=get_operating_hours(facility_id))


@app.put("/v1/facilities/{facility_id}/operating-hours", dependencies=[Depends(verify_admin_api_key)])
def set_facility_operating_hours(
    facility_id: str,
    request: OperatingHoursUpdateRequest,
    user_id: str = Depends(current_user_id),
):
    return JSONResponse(
        content=update_operating_hours(facility_id, user_id, request.model_dump(mode="json", by_alias=True))
    )


@app.post("/v1/admin/facilities", dependencies=[Depends(verify_admin_api_key)])
def admin_upsert_facility(request: FacilityUpsertRequest):
    return JSONResponse(content=upsert_facility(request.model_dump(mode="json", by_alias=True)))


@app.post("/v1/reservations/{reservation_id}/approve", dependencies=[Depends(verify_admin_api_key)])
def admin_approve_reservation(reservation_id: str, user_id: str = Depends(current_user_id)):
    return JSONResponse(content=approve_reservation(reservation_id, user_id))


@app.post("/v1/reservations/{reservation_id}/reject", dependencies=[Depends(verify_admin_api_key)])
def admin_reject_reservation(
    reservation_id: str,
    request: Optional[AdminRejectRequest] = Body(default=None),
    user_id: str = Depends(current_user_id),
):
    payload = request.model_dump(mode="json", by_alias=True) if request else {}
    return JSONResponse(content=reject_reservation(reservation_id, user_id, payload))
