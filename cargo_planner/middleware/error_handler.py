import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ..utils.error_handling import InventoryError

logger = logging.getLogger(__name__)


async def error_handler_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except InventoryError as e:
        logger.warning(f"{request.method} {request.url.path} rejected: {e.message}")
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "message": e.message, "details": e.details}
        )
    except Exception:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error"}
        )
