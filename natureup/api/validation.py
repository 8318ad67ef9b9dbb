import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from natureup.core.request_schema import validate_request

router = APIRouter(tags=["validation"])
logger = logging.getLogger("uvicorn.error")


@router.post("/validate-request")
async def validate_client_request(request: Request) -> JSONResponse:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.exception("validate_request_parse_error detail=%s", str(exc))
        return JSONResponse(
            status_code=500,
            content={"valid": False, "message": "Failed to parse request", "error": str(exc)},
        )

    result = validate_request(payload)
    if result.valid:
        logger.info("validate_request_passed user_id=%s", result.request.user.id if result.request else None)
        return JSONResponse(
            status_code=200,
            content={"valid": True, "message": "Request payload is valid", "receivedPayload": payload},
        )

    logger.info("validate_request_failed fields=%s", ",".join(err.field for err in result.errors))
    return JSONResponse(
        status_code=400,
        content={
            "valid": False,
            "message": "Request payload is invalid",
            "errors": [err.model_dump() for err in result.errors],
        },
    )
