from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.db import get_db
from schemas.scoring import ScoringConfig
from services.scoring_config_provider import SqlScoringConfigProvider, scoring_config_cache

router = APIRouter(prefix="/scoring-config", tags=["배점 설정"])


def get_provider(db: Session = Depends(get_db)) -> SqlScoringConfigProvider:
    return SqlScoringConfigProvider(db, scoring_config_cache)


# ==========================================================
# [1단계] 학기별 배점/등급표 조회·저장
# ==========================================================

# ✅ [READ] 적용 중인 설정 (학기별 설정이 없으면 기본값)
@router.get("/")
def read_scoring_config(
    session: Optional[str] = None,
    term: Optional[str] = None,
    provider: SqlScoringConfigProvider = Depends(get_provider),
):
    config = provider.get_scoring_config(session, term)
    return {
        "success": True,
        "data": {**config.model_dump(), "total_max": config.total_max},
        "message": f"Scoring config for {session or '-'} / {term or '-'}",
    }


# ✅ [UPSERT] 학기별 설정 저장 (검증 실패 시 422)
@router.put("/")
def save_scoring_config(config: ScoringConfig, provider: SqlScoringConfigProvider = Depends(get_provider)):
    saved = provider.save_scoring_config(config)
    return {
        "success": True,
        "data": {**saved.model_dump(), "total_max": saved.total_max},
        "message": "Scoring config saved successfully",
    }
