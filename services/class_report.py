"""
services/class_report.py

- 반/과목 단위 석차(동점자 같은 등수) 및 성적 요약
- 요약 결과는 (class_id, subject_code, session, term) 키로 TTL 캐시, 저장 후 무효화
- 학생별 과목 성적 요약 / 학년도·학기 전체 통계 (과목별 평균·인원)
"""

from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

from config.settings import settings
from schemas.results import ResultRecord
from schemas.scoring import ScoringConfig
from services.cache import TTLCache

SummaryKey = Tuple[str, str, str, str]

# ✅ 반 성적 요약 캐시
summary_cache: TTLCache[SummaryKey, dict] = TTLCache(
    ttl_seconds=settings.SUMMARY_CACHE_TTL,
    max_entries=settings.CACHE_MAX_ENTRIES,
)


def invalidate_summary(grid: SummaryKey) -> None:
    summary_cache.invalidate(grid)


def rank_results(records: Sequence[ResultRecord]) -> List[dict]:
    """
    합계 내림차순 석차
    - 동점자는 같은 등수, 다음 등수는 건너뜀 (1, 2, 2, 4)
    - percentile = (인원 - 등수 + 1) / 인원 * 100
    """
    ordered = sorted(records, key=lambda r: (-r.total_score, r.student_id))
    count = len(ordered)
    ranked = []
    position = 0
    previous = None
    for index, record in enumerate(ordered, start=1):
        if record.total_score != previous:
            position = index
            previous = record.total_score
        ranked.append({
            "student_id": record.student_id,
            "total_score": record.total_score,
            "grade": record.grade,
            "position": position,
            "percentile": round((count - position + 1) / count * 100),
        })
    return ranked


def summarize_results(records: Sequence[ResultRecord], config: ScoringConfig) -> dict:
    distribution: Dict[str, int] = {b.letter: 0 for b in config.boundaries}
    totals = [r.total_score for r in records]
    for record in records:
        if record.grade in distribution:
            distribution[record.grade] += 1

    return {
        "total_students": len(records),
        "average": round(sum(totals) / len(totals), 2) if totals else 0,
        "highest": max(totals) if totals else 0,
        "lowest": min(totals) if totals else 0,
        "pass_mark": config.pass_mark,
        "passed": sum(1 for t in totals if t >= config.pass_mark),
        "grade_distribution": distribution,
    }


def build_class_report(records: Sequence[ResultRecord], config: ScoringConfig) -> dict:
    return {
        "summary": summarize_results(records, config),
        "rankings": rank_results(records),
    }


# ==========================================================
# [학생] 한 학생의 과목별 성적 요약
# ==========================================================
def summarize_student(records: Sequence[ResultRecord]) -> dict:
    ordered = sorted(records, key=lambda r: r.subject_code)
    total = sum(r.total_score for r in ordered)
    return {
        "subject_count": len(ordered),
        "total_score": total,
        "average": round(total / len(ordered), 2) if ordered else 0,
        "results": [r.model_dump(mode="json") for r in ordered],
    }


# ==========================================================
# [학년도/학기] 전체 통계
# ==========================================================
def summarize_period(records: Sequence[ResultRecord], config: ScoringConfig) -> dict:
    """
    학년도/학기 전체 성적 통계
    - 학생은 (반, 학생 ID) 단위로 집계, 학생 평균 = 과목 합계 평균
    - average_score = 학생 평균들의 평균 (소수점 1자리)
    - subjects: 과목별 응시 인원 / 평균 / 최고 / 최저 / 통과 인원
    """
    by_student: Dict[Tuple[str, str], List[float]] = defaultdict(list)
    by_subject: Dict[str, List[float]] = defaultdict(list)
    for record in records:
        by_student[(record.class_id, record.student_id)].append(record.total_score)
        by_subject[record.subject_code].append(record.total_score)

    student_averages = [sum(totals) / len(totals) for totals in by_student.values()]
    subjects = [
        {
            "subject_code": code,
            "entries": len(totals),
            "average": round(sum(totals) / len(totals), 2),
            "highest": max(totals),
            "lowest": min(totals),
            "passed": sum(1 for t in totals if t >= config.pass_mark),
        }
        for code, totals in sorted(by_subject.items())
    ]

    return {
        "total_students": len(by_student),
        "class_count": len({class_id for class_id, _ in by_student}),
        "results_submitted": len(records),
        "average_score": round(sum(student_averages) / len(student_averages), 1) if student_averages else 0,
        "pass_mark": config.pass_mark,
        "subjects": subjects,
    }
