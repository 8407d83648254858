import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from schemas.common import ErrorDetail, ErrorResponse
from services.errors import ResultsError

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str) -> dict:
    return ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(mode="json")


def add_error_handlers(app: FastAPI):
    # ✅ 성적 처리 예외 (설정 오류 422, 점수 범위 422, 저장 중복 409, 저장소 502)
    @app.exception_handler(ResultsError)
    async def results_exception_handler(request: Request, exc: ResultsError):
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, str(exc)))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=_error_body("INTERNAL_ERROR", str(exc)))
