"""Agent functions: availability lookup and reservation creation

Both endpoints answer every request with permissive CORS headers, reply 200
to OPTIONS and report failures as ``{"success": false, "error": ...}``.
"""

import re
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
import structlog

from app.config import settings
from app.api.deps import get_data_source
from app.schemas.agent import AvailabilityData, CreateReservationCommand
from app.services.data_source import DataSource, FetchFailure

router = APIRouter()
logger = structlog.get_logger()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-agent-key",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}$")


class ValidationFailure(Exception):
    """Request input is missing or invalid"""


def _respond(content: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)


def _error(message: str, status_code: int) -> JSONResponse:
    return _respond({"success": False, "error": message}, status_code)


def _preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


def _unauthorized(request: Request) -> bool:
    """True when an agent key is configured and the request does not carry it"""
    if not settings.agent_api_key:
        return False
    return request.headers.get("x-agent-key") != settings.agent_api_key


async def _read_params(request: Request) -> Dict[str, Any]:
    if request.method == "GET":
        return dict(request.query_params)
    try:
        body = await request.json()
    except ValueError:
        raise ValidationFailure("Invalid JSON body")
    if not isinstance(body, dict):
        raise ValidationFailure("Invalid JSON body")
    return body


def _parse_date(value: Any) -> date:
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValidationFailure("Invalid date format: must be YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationFailure("Invalid date format: must be YYYY-MM-DD")


def _parse_int(value: Any, strict: bool) -> Optional[int]:
    """Integer from a JSON number, or from a query string unless ``strict``"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not strict and isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _check_guests(value: Any, strict: bool) -> int:
    guests = _parse_int(value, strict)
    if guests is None or guests < 1 or guests > settings.max_party_size:
        raise ValidationFailure(
            f"Invalid guests: must be a number between 1 and {settings.max_party_size}"
        )
    return guests


def _check_duration(value: Any, strict: bool) -> int:
    if value is None or value == "":
        return settings.default_duration_minutes
    duration = _parse_int(value, strict)
    if (
        duration is None
        or duration < settings.min_duration_minutes
        or duration > settings.max_duration_minutes
    ):
        raise ValidationFailure(
            "Invalid duration_minutes: must be a number between "
            f"{settings.min_duration_minutes} and {settings.max_duration_minutes}"
        )
    return duration


def _optional_text(body: Dict[str, Any], field: str) -> Optional[str]:
    value = body.get(field)
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValidationFailure(f"Invalid {field}: must be a string")
    return value


@router.api_route("/agent-availability", methods=ALL_METHODS)
async def agent_availability(
    request: Request,
    data_source: DataSource = Depends(get_data_source),
):
    """Available time slots for a date and party size"""
    if request.method == "OPTIONS":
        return _preflight()
    if request.method not in ("GET", "POST"):
        return _error("Method not allowed", 405)
    if _unauthorized(request):
        logger.warning("Invalid agent API key", endpoint="agent-availability")
        return _error("Unauthorized", 401)

    try:
        return await _check_availability(request, data_source)
    except Exception:
        logger.exception("Error in agent-availability function")
        return _error("Internal server error", 500)


async def _check_availability(request: Request, data_source: DataSource) -> JSONResponse:
    try:
        params = await _read_params(request)
        if params.get("date") in (None, "") or params.get("guests") in (None, ""):
            raise ValidationFailure("Missing required parameters: date and guests")

        strict = request.method == "POST"
        day = _parse_date(params["date"])
        guests = _check_guests(params["guests"], strict)
        duration = _check_duration(params.get("duration_minutes"), strict)
    except ValidationFailure as e:
        return _error(str(e), 400)

    logger.info(
        "Checking availability",
        date=day.isoformat(),
        guests=guests,
        duration_minutes=duration,
    )

    try:
        slots = await data_source.get_available_slots(day, guests, duration)
    except FetchFailure as e:
        logger.error("Error fetching time slots", error=str(e))
        return _error("Failed to fetch available time slots", 500)

    logger.info("Available time slots found", date=day.isoformat(), count=len(slots))

    data = AvailabilityData(
        date=day.isoformat(),
        guests=guests,
        duration_minutes=duration,
        available_slots=slots,
        total_slots=len(slots),
    )
    return _respond({"success": True, "data": data.model_dump()})


@router.api_route("/agent-create-reservation", methods=ALL_METHODS)
async def agent_create_reservation(
    request: Request,
    data_source: DataSource = Depends(get_data_source),
):
    """Create a reservation and let the database assign tables"""
    if request.method == "OPTIONS":
        return _preflight()
    if request.method != "POST":
        return _error("Method not allowed", 405)
    if _unauthorized(request):
        logger.warning("Invalid agent API key", endpoint="agent-create-reservation")
        return _error("Unauthorized", 401)

    try:
        return await _create_reservation(request, data_source)
    except Exception:
        logger.exception("Error in agent-create-reservation function")
        return _error("Internal server error", 500)


async def _create_reservation(request: Request, data_source: DataSource) -> JSONResponse:
    try:
        body = await _read_params(request)
        required = ("name", "email", "guests", "date", "time")
        if any(body.get(field) in (None, "") for field in required):
            raise ValidationFailure("Missing required fields: name, email, guests, date, time")

        guests = _check_guests(body["guests"], strict=True)
        duration = _check_duration(body.get("duration_minutes"), strict=True)

        name = body["name"]
        if not isinstance(name, str):
            raise ValidationFailure("Invalid name: must be a string")

        email = body["email"]
        if not isinstance(email, str) or not EMAIL_RE.match(email):
            raise ValidationFailure("Invalid email format")

        day = _parse_date(body["date"])

        time = body["time"]
        if not isinstance(time, str) or not TIME_RE.match(time):
            raise ValidationFailure("Invalid time format: must be HH:MM")

        command = CreateReservationCommand(
            name=name,
            email=email,
            phone=_optional_text(body, "phone"),
            date=day,
            time=time,
            guests=guests,
            comments=_optional_text(body, "comments"),
            duration_minutes=duration,
        )
    except ValidationFailure as e:
        return _error(str(e), 400)

    logger.info(
        "Creating reservation",
        customer=command.name,
        guests=guests,
        date=day.isoformat(),
        time=time,
    )

    try:
        result = await data_source.create_reservation(command)
    except FetchFailure as e:
        logger.error("Error creating reservation", error=str(e))
        return _error(str(e), 500)

    if not result.success:
        logger.info("Reservation creation rejected", error=result.error)
        return _error(result.error or "Failed to create reservation", 400)

    logger.info("Reservation created", reservation_id=result.reservation_id)

    return _respond({
        "success": True,
        "data": {
            "reservation_id": result.reservation_id,
            "message": "Reservation created successfully",
            "details": {
                "customer": command.name,
                "email": command.email,
                "phone": command.phone,
                "guests": guests,
                "date": day.isoformat(),
                "time": time,
                "duration_minutes": duration,
                "comments": command.comments,
                "assigned_tables": result.assigned_tables or [],
            },
        },
    })
