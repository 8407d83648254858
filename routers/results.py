import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database.db import get_db
from schemas.results import BulkEntryRequest, CompositeKey, ResultRecord
from schemas.scoring import ScorePreviewRequest, ScorePreview
from services.bulk_reconciler import BulkReconciler, SaveGuard
from services.class_report import (
    build_class_report,
    invalidate_summary,
    summarize_period,
    summarize_student,
    summary_cache,
)
from services.grading_engine import GradingEngine
from services.results_store.base import ResultsStore
from services.results_store.factory import get_results_store
from services.scoring_config_provider import (
    ScoringConfigProvider,
    SqlScoringConfigProvider,
    scoring_config_cache,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/results", tags=["results"])

# ✅ 그리드 단위 저장 진행 여부 (요청 간 공유)
save_guard = SaveGuard()
engine = GradingEngine()


# ==========================================================
# [공통] 의존성 주입 (저장소 / 배점 설정 / 일괄 저장기)
# ==========================================================
def get_store(db: Session = Depends(get_db)):
    store = get_results_store(db)
    try:
        yield store
    finally:
        close = getattr(store, "close", None)
        if close:
            close()


def get_config_provider(db: Session = Depends(get_db)) -> ScoringConfigProvider:
    return SqlScoringConfigProvider(db, scoring_config_cache)


def get_reconciler(
    store: ResultsStore = Depends(get_store),
    provider: ScoringConfigProvider = Depends(get_config_provider),
) -> BulkReconciler:
    return BulkReconciler(store, provider, engine=engine, guard=save_guard, on_saved=invalidate_summary)


# ==========================================================
# [1단계] 정적 라우터 (일괄 저장 / 미리보기 / 요약)
# ==========================================================

# ✅ [BULK] 일괄 입력 그리드 저장
@router.post("/bulk")
def bulk_save(request: BulkEntryRequest, reconciler: BulkReconciler = Depends(get_reconciler)):
    summary = reconciler.reconcile(
        request.rows,
        request.class_id,
        request.subject_code,
        request.session,
        request.term,
        snapshot=request.snapshot,
    )

    parts = []
    if summary.saved_count:
        parts.append(f"{summary.saved_count} {'record' if summary.saved_count == 1 else 'records'} saved")
    if summary.removed_count:
        parts.append(f"{summary.removed_count} {'record' if summary.removed_count == 1 else 'records'} removed")
    message = ", ".join(parts) if parts else "No changes applied"
    if summary.errors:
        message += f" ({len(summary.errors)} failed)"

    return {
        "success": not summary.errors,
        "data": summary.model_dump(),
        "message": message,
    }


# ✅ [PREVIEW] 입력 중인 점수의 합계/등급 (화면 표시용)
@router.post("/preview")
def preview_scores(request: ScorePreviewRequest, provider: ScoringConfigProvider = Depends(get_config_provider)):
    config = provider.get_scoring_config(request.session, request.term)
    engine.validate(config)

    total, has_values = engine.display_total(request.entered_scores, config.component_weights)
    preview = ScorePreview(total_score=total, has_values=has_values)
    if has_values and total >= 0:
        preview.grade = engine.resolve_grade(total, config.boundaries)
        preview.remark = engine.resolve_remark(total, config.boundaries)
        preview.percentage = engine.compute_percentage(total, config.component_weights)

    return {"success": True, "data": preview.model_dump()}


# ✅ [SUMMARY] 반/과목 석차 및 요약 (캐시)
@router.get("/summary")
def read_class_summary(
    class_id: str,
    subject_code: str,
    session: str,
    term: str,
    store: ResultsStore = Depends(get_store),
    provider: ScoringConfigProvider = Depends(get_config_provider),
):
    grid = (class_id, subject_code, session, term)

    def _build():
        config = provider.get_scoring_config(session, term)
        records = store.fetch_results(class_id, subject_code, session, term)
        return build_class_report(records, config)

    report = summary_cache.get_or_set(grid, _build)
    return {
        "success": True,
        "data": {"class_id": class_id, "subject_code": subject_code, "session": session, "term": term, **report},
    }


# ✅ [STUDENT] 한 학생의 과목별 성적 (반/학년도/학기)
@router.get("/student")
def read_student_results(
    student_id: str,
    class_id: str,
    session: str,
    term: str,
    store: ResultsStore = Depends(get_store),
):
    records = store.fetch_student_results(student_id, class_id, session, term)
    return {
        "success": True,
        "data": {
            "student_id": student_id,
            "class_id": class_id,
            "session": session,
            "term": term,
            **summarize_student(records),
        },
        "message": f"{len(records)} results found",
    }


# ✅ [PERIOD] 학년도/학기 전체 성적 목록
@router.get("/period")
def read_period_results(session: str, term: str, store: ResultsStore = Depends(get_store)):
    records = store.fetch_period_results(session, term)
    return {
        "success": True,
        "data": [r.model_dump(mode="json") for r in records],
        "message": f"{len(records)} results found",
    }


# ✅ [PERIOD SUMMARY] 학년도/학기 전체 통계 (과목별 평균/인원)
@router.get("/period-summary")
def read_period_summary(
    session: str,
    term: str,
    store: ResultsStore = Depends(get_store),
    provider: ScoringConfigProvider = Depends(get_config_provider),
):
    config = provider.get_scoring_config(session, term)
    records = store.fetch_period_results(session, term)
    return {
        "success": True,
        "data": {"session": session, "term": term, **summarize_period(records, config)},
    }


# ==========================================================
# [2단계] CRUD 기본 라우터 (복합키 기준)
# ==========================================================

# ✅ [READ] 반/과목/학년도/학기 성적 목록
@router.get("/")
def read_results(
    class_id: str,
    subject_code: str,
    session: str,
    term: str,
    store: ResultsStore = Depends(get_store),
):
    records = store.fetch_results(class_id, subject_code, session, term)
    return {
        "success": True,
        "data": [r.model_dump(mode="json") for r in records],
        "message": f"{len(records)} results found",
    }


# ✅ [UPSERT] 성적 저장 (합계/등급은 서버에서 다시 계산)
@router.put("/")
def upsert_result(
    record: ResultRecord,
    store: ResultsStore = Depends(get_store),
    provider: ScoringConfigProvider = Depends(get_config_provider),
):
    config = provider.get_scoring_config(record.session, record.term)
    engine.validate(config)
    graded = engine.grade_record(record.key(), record.component_scores, config)

    result = store.upsert_result(graded)
    if not result.success:
        return {"success": False, "error": {"code": 500, "message": result.reason}}

    invalidate_summary((record.class_id, record.subject_code, record.session, record.term))
    return {
        "success": True,
        "data": graded.model_dump(mode="json"),
        "message": "Result saved successfully",
    }


# ✅ [DELETE] 성적 삭제
@router.delete("/")
def delete_result(
    student_id: str = Query(..., min_length=1, max_length=20, description="학생 ID"),
    class_id: str = Query(..., min_length=1, max_length=40, description="반"),
    subject_code: str = Query(..., min_length=1, max_length=20, description="과목 코드"),
    session: str = Query(..., min_length=1, max_length=20, description="학년도 (예: 2024/2025)"),
    term: str = Query(..., min_length=1, max_length=50, description="학기 (예: 1st Term)"),
    store: ResultsStore = Depends(get_store),
):
    key = CompositeKey(student_id=student_id, class_id=class_id, subject_code=subject_code, session=session, term=term)
    result = store.delete_result(key)
    if not result.success:
        code = 404 if result.reason == "Result not found" else 500
        return {"success": False, "error": {"code": code, "message": result.reason}}

    invalidate_summary((class_id, subject_code, session, term))
    return {
        "success": True,
        "data": key.model_dump(),
        "message": "Result removed successfully",
    }
