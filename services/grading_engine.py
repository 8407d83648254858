"""
services/grading_engine.py

- 항목별 점수(CA/Test/Exam) → 합계 → 등급 계산
- 내부 상태가 없는 순수 계산 클래스 (여러 스레드에서 동시에 호출해도 안전)
- 배점/등급표 검증(validate_config)은 설정을 불러오거나 변경할 때 한 번만 호출
"""

import math
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Sequence, Tuple

from schemas.results import CompositeKey, ResultRecord
from schemas.scoring import GradeBoundary, ScoringConfig
from services.errors import ConfigurationError, InvalidScoreError


def parse_entered(raw) -> Optional[float]:
    """
    UI 입력값 → 숫자
    - None / "" / 공백 → None (빈 칸)
    - 숫자가 아니면 ValueError
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError(f"not a number: {raw!r}")
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if text == "":
            return None
        value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"not a number: {raw!r}")
    return value


class GradingEngine:

    # ==========================================================
    # [합계] 항목 점수 합산
    # ==========================================================
    def compute_total(self, component_scores: Mapping[str, float], weights: Mapping[str, int]) -> float:
        """
        항목 점수 합계
        - component_scores 에 없는 항목은 0점으로 처리
        - 음수 / 배점 초과 / 배점에 없는 항목이면 InvalidScoreError
        """
        total = 0.0
        for component, value in component_scores.items():
            maximum = weights.get(component)
            if maximum is None:
                raise InvalidScoreError(component, value)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvalidScoreError(component, value, maximum, message=f"{component}: {value!r} is not a number")
            if value < 0 or value > maximum:
                raise InvalidScoreError(component, value, maximum)
            total += value
        return total

    def display_total(self, entered_scores: Mapping[str, object], weights: Mapping[str, int]) -> Tuple[float, bool]:
        """
        화면 표시용 합계 (검증 없음)
        - 빈 칸/숫자가 아닌 값은 0으로 취급
        - 반환: (합계, 입력값 존재 여부)
        """
        total = 0.0
        has_values = False
        for component in weights:
            raw = entered_scores.get(component)
            if raw is None or (isinstance(raw, str) and raw.strip() == ""):
                continue
            has_values = True
            try:
                value = parse_entered(raw)
            except ValueError:
                value = 0.0
            total += value or 0.0
        return total, has_values

    # ==========================================================
    # [등급] 등급표 조회
    # ==========================================================
    def resolve_grade(self, total: float, boundaries: Sequence[GradeBoundary]) -> str:
        return self._match_boundary(total, boundaries).letter

    def resolve_remark(self, total: float, boundaries: Sequence[GradeBoundary]) -> str:
        return self._match_boundary(total, boundaries).remark

    def _match_boundary(self, total: float, boundaries: Sequence[GradeBoundary]) -> GradeBoundary:
        if not boundaries:
            raise ConfigurationError("grade boundary table is empty")
        for boundary in sorted(boundaries, key=lambda b: b.min_score, reverse=True):
            if boundary.min_score <= total:
                return boundary
        # 최저 기준보다 낮은 점수 → 등급표가 전체 범위를 덮지 못함
        raise ConfigurationError(f"no grade boundary covers total {total}")

    def compute_percentage(self, total: float, weights: Mapping[str, int]) -> float:
        total_max = sum(weights.values())
        if total_max <= 0:
            raise ConfigurationError("total of component weights must be greater than 0")
        return round(total / total_max * 100, 1)

    # ==========================================================
    # [설정 검증] 설정 로드/변경 시 1회
    # ==========================================================
    def validate_config(self, weights: Mapping[str, int], boundaries: Sequence[GradeBoundary]) -> None:
        if not weights:
            raise ConfigurationError("at least one score component is required")
        for component, weight in weights.items():
            if isinstance(weight, bool) or not isinstance(weight, int):
                raise ConfigurationError(f"weight for {component} must be an integer, got {weight!r}")
            if weight < 0:
                raise ConfigurationError(f"weight for {component} must not be negative")
        if not any(weight > 0 for weight in weights.values()):
            raise ConfigurationError("at least one score component must have a weight above 0")

        if not boundaries:
            raise ConfigurationError("grade boundary table is empty")
        seen = set()
        previous: Optional[float] = None
        for boundary in boundaries:
            if boundary.letter in seen:
                raise ConfigurationError(f"duplicate grade letter {boundary.letter}")
            seen.add(boundary.letter)
            if boundary.min_score < 0:
                raise ConfigurationError(f"grade {boundary.letter} has a negative minimum")
            if previous is not None and boundary.min_score >= previous:
                raise ConfigurationError("grade boundaries must be strictly descending by minimum score")
            previous = boundary.min_score
        if boundaries[-1].min_score != 0:
            raise ConfigurationError(
                f"grade boundaries must end with a catch-all at 0 (lowest is {boundaries[-1].letter} at {boundaries[-1].min_score})"
            )

    def validate(self, config: ScoringConfig) -> None:
        self.validate_config(config.component_weights, config.boundaries)

    # ==========================================================
    # [레코드] 파생값(합계/등급/백분율/코멘트)을 채운 성적 레코드 생성
    # ==========================================================
    def grade_record(self, key: CompositeKey, component_scores: Dict[str, float], config: ScoringConfig) -> ResultRecord:
        total = self.compute_total(component_scores, config.component_weights)
        boundary = self._match_boundary(total, config.boundaries)
        return ResultRecord(
            **key.model_dump(),
            component_scores=dict(component_scores),
            total_score=total,
            grade=boundary.letter,
            percentage=self.compute_percentage(total, config.component_weights),
            remark=boundary.remark,
            updated_at=datetime.now(timezone.utc),
        )
