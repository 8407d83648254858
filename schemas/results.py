from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Dict, List, Literal, Optional


# ==========================================================
# [복합키] (학생, 반, 과목, 학년도, 학기)
# ==========================================================
class CompositeKey(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=20)
    class_id: str = Field(..., min_length=1, max_length=40)
    subject_code: str = Field(..., min_length=1, max_length=20)
    session: str = Field(..., min_length=1, max_length=20)
    term: str = Field(..., min_length=1, max_length=50)

    model_config = ConfigDict(frozen=True)


# ==========================================================
# [성적 레코드] 저장소가 소유하는 한 학생·한 과목 성적
# ==========================================================
class ResultRecord(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=20)   # 학생 ID
    class_id: str = Field(..., min_length=1, max_length=40)     # 반
    subject_code: str = Field(..., min_length=1, max_length=20) # 과목 코드
    session: str = Field(..., min_length=1, max_length=20)      # 학년도
    term: str = Field(..., min_length=1, max_length=50)         # 학기
    component_scores: Dict[str, float] = Field(default_factory=dict)  # 항목별 점수
    total_score: float = 0.0                                    # 합계 (파생값)
    grade: Optional[str] = None                                 # 등급 (파생값)
    percentage: Optional[float] = None                          # 백분율 (파생값)
    remark: Optional[str] = None                                # 등급 코멘트 (파생값)
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    def key(self) -> CompositeKey:
        return CompositeKey(
            student_id=self.student_id,
            class_id=self.class_id,
            subject_code=self.subject_code,
            session=self.session,
            term=self.term,
        )


# ==========================================================
# [일괄 입력] UI 그리드 한 행 (저장되지 않는 임시 데이터)
# ==========================================================
class BulkGridRow(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=20)
    entered_scores: Dict[str, Optional[str | float]] = Field(default_factory=dict)  # 원본 입력값 ("" = 빈 칸)
    marked_for_deletion: bool = False                          # 명시적 삭제 표시


class BulkEntryRequest(BaseModel):
    class_id: str = Field(..., min_length=1, max_length=40)
    subject_code: str = Field(..., min_length=1, max_length=20)
    session: str = Field(..., min_length=1, max_length=20)
    term: str = Field(..., min_length=1, max_length=50)
    rows: List[BulkGridRow]
    snapshot: Optional[List[ResultRecord]] = None              # 그리드 렌더링 시점의 저장 데이터


# ==========================================================
# [저장 결과] 저장소 호출 단위 / 일괄 저장 요약
# ==========================================================
class StoreResult(BaseModel):
    success: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "StoreResult":
        return cls(success=True)

    @classmethod
    def fail(cls, reason: str) -> "StoreResult":
        return cls(success=False, reason=reason)


class RowError(BaseModel):
    student_id: str
    reason: str
    kind: Literal["invalid_score", "store"] = "store"


class ReconcileSummary(BaseModel):
    saved_count: int = 0        # 생성 + 수정 성공 건수
    removed_count: int = 0      # 삭제 성공 건수
    skipped_count: int = 0      # 변경 없음 / 삭제 대상 없음
    created_count: int = 0
    updated_count: int = 0
    errors: List[RowError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
