from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional


# ==========================================================
# [등급 기준] 최소 점수(이상) → 등급 문자
# ==========================================================
class GradeBoundary(BaseModel):
    letter: str = Field(..., min_length=1, max_length=5)   # 등급 (예: A+, A, F)
    min_score: float                                     # 해당 등급 최소 점수 (포함)
    remark: str = ""                                     # 등급 코멘트 (표시용)

    model_config = ConfigDict(extra="ignore", from_attributes=True)


# 기본 등급표 (내림차순, F 0점으로 종료)
DEFAULT_BOUNDARIES: List[GradeBoundary] = [
    GradeBoundary(letter="A+", min_score=90, remark="Outstanding performance"),
    GradeBoundary(letter="A", min_score=80, remark="Excellent performance"),
    GradeBoundary(letter="B+", min_score=70, remark="Very good result"),
    GradeBoundary(letter="B", min_score=60, remark="Good effort"),
    GradeBoundary(letter="C+", min_score=50, remark="Fair performance"),
    GradeBoundary(letter="C", min_score=40, remark="Needs improvement"),
    GradeBoundary(letter="D", min_score=35, remark="At risk"),
    GradeBoundary(letter="F", min_score=0, remark="Fail"),
]


# ==========================================================
# [배점 설정] 학기별 또는 전역 기본값
# ==========================================================
class ScoringConfig(BaseModel):
    session: Optional[str] = None                         # 학년도 (None이면 전역 기본값)
    term: Optional[str] = None                            # 학기
    component_weights: Dict[str, int] = Field(
        default_factory=lambda: {"ca": 10, "test": 20, "exam": 70}
    )                                                     # 항목별 만점 (입력 순서 유지)
    boundaries: List[GradeBoundary] = Field(
        default_factory=lambda: [b.model_copy() for b in DEFAULT_BOUNDARIES]
    )
    pass_mark: float = 40.0                               # 합격 기준 점수

    model_config = ConfigDict(extra="ignore")

    @property
    def total_max(self) -> int:
        return sum(self.component_weights.values())

    @property
    def is_default(self) -> bool:
        return self.session is None and self.term is None


# ==========================================================
# [실시간 미리보기] 입력 중인 점수 → 합계/등급
# ==========================================================
class ScorePreviewRequest(BaseModel):
    session: Optional[str] = None
    term: Optional[str] = None
    entered_scores: Dict[str, Optional[str | float]] = Field(default_factory=dict)


class ScorePreview(BaseModel):
    total_score: float
    grade: Optional[str] = None          # 입력값이 하나도 없으면 None ("--" 표시)
    percentage: Optional[float] = None
    remark: Optional[str] = None
    has_values: bool = False
