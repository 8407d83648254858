"""
schemas/common.py

- 프로젝트 전반에서 재사용할 공용 스키마
- Pydantic v2 기준
- 에러 응답 표준: ErrorDetail, ErrorResponse (middlewares/error_handler.py 에서 사용)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


class ErrorDetail(BaseModel):
    """에러 코드/메시지를 담는 최소 단위"""
    code: str = Field(..., description="에러 식별 코드 (예: INTERNAL_ERROR, CONFIGURATION_ERROR)")
    message: str = Field(..., description="사람이 읽을 수 있는 에러 메시지")


class ErrorResponse(BaseModel):
    """전역 에러 핸들러에서 내려주는 표준 에러 응답"""
    success: bool = False
    error: ErrorDetail
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="응답 생성 시각 (UTC)"
    )
    trace_id: Optional[str] = Field(
        default=None, description="요청 추적용 ID(X-Request-ID 등을 복사해 넣을 수 있음)"
    )

    model_config = ConfigDict(extra="ignore")
