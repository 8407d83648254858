"""
services/bulk_reconciler.py

- 일괄 성적 입력 그리드 ↔ 저장된 성적(snapshot) 비교 → 생성/수정/삭제 작업 산출 및 실행
- 저장 1회 흐름: IDLE → VALIDATING → DIFFING → EXECUTING → REPORTING → IDLE
- 행 단위 오류(점수 범위, 저장소 실패)는 요약(errors)에 누적하고 나머지 행은 계속 처리
- 설정 오류(ConfigurationError)는 저장소 호출 전에 즉시 중단
- 같은 그리드(반, 과목, 학년도, 학기)에 대한 동시 저장은 SaveInProgressError
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Set, Tuple

from pydantic import ValidationError

from schemas.results import BulkGridRow, CompositeKey, ReconcileSummary, ResultRecord, RowError
from schemas.scoring import ScoringConfig
from services.errors import InvalidScoreError, SaveInProgressError
from services.grading_engine import GradingEngine, parse_entered
from services.results_store.base import ResultsStore
from services.scoring_config_provider import ScoringConfigProvider

logger = logging.getLogger(__name__)

GridKey = Tuple[str, str, str, str]  # (class_id, subject_code, session, term)


class ReconcilePhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    DIFFING = "diffing"
    EXECUTING = "executing"
    REPORTING = "reporting"


class SaveGuard:
    """진행 중인 저장 작업 추적 (키 단위 비차단 잠금)"""

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Set[Hashable] = set()

    @contextmanager
    def hold(self, key: Hashable):
        with self._lock:
            if key in self._active:
                raise SaveInProgressError("a save for this grid is already in progress")
            self._active.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(key)

    def is_busy(self, key: Optional[Hashable] = None) -> bool:
        with self._lock:
            if key is None:
                return bool(self._active)
            return key in self._active


@dataclass
class _Operation:
    kind: str                              # "create" | "update" | "delete"
    key: CompositeKey
    record: Optional[ResultRecord] = None  # delete 작업은 None


class BulkReconciler:
    def __init__(
        self,
        store: ResultsStore,
        config_provider: ScoringConfigProvider,
        engine: Optional[GradingEngine] = None,
        guard: Optional[SaveGuard] = None,
        on_saved: Optional[Callable[[GridKey], None]] = None,
    ):
        self.store = store
        self.config_provider = config_provider
        self.engine = engine or GradingEngine()
        self.guard = guard or SaveGuard()
        self.on_saved = on_saved
        self.phase = ReconcilePhase.IDLE

    @property
    def is_busy(self) -> bool:
        return self.phase != ReconcilePhase.IDLE or self.guard.is_busy()

    # ==========================================================
    # [진입점] 그리드 저장
    # ==========================================================
    def reconcile(
        self,
        rows: Iterable[BulkGridRow],
        class_id: str,
        subject_code: str,
        session: str,
        term: str,
        snapshot: Optional[List[ResultRecord]] = None,
    ) -> ReconcileSummary:
        grid: GridKey = (class_id, subject_code, session, term)
        with self.guard.hold(grid):
            try:
                return self._run(list(rows), grid, snapshot)
            finally:
                self.phase = ReconcilePhase.IDLE

    def _run(self, rows: List[BulkGridRow], grid: GridKey, snapshot: Optional[List[ResultRecord]]) -> ReconcileSummary:
        class_id, subject_code, session, term = grid

        # 설정 검증 실패 시 저장소 호출 없이 중단
        config = self.config_provider.get_scoring_config(session, term)
        self.engine.validate(config)

        # 렌더링 시점 데이터가 없을 때만 한 번 조회 (이후 재조회 없음)
        if snapshot is None:
            snapshot = self.store.fetch_results(class_id, subject_code, session, term)
        existing = {
            record.student_id: record
            for record in snapshot
            if (record.class_id, record.subject_code, record.session, record.term) == grid
        }

        # 같은 student_id 가 여러 번 오면 마지막 행 적용
        latest: Dict[str, BulkGridRow] = {}
        for row in rows:
            latest[row.student_id] = row

        summary = ReconcileSummary()

        self.phase = ReconcilePhase.VALIDATING
        parsed = self._validate(latest, config, summary)

        self.phase = ReconcilePhase.DIFFING
        operations = self._diff(latest, parsed, existing, grid, config, summary)

        self.phase = ReconcilePhase.EXECUTING
        self._execute(operations, summary)

        self.phase = ReconcilePhase.REPORTING
        logger.info(
            f"Bulk save {class_id}/{subject_code}/{session}/{term}: "
            f"saved={summary.saved_count} removed={summary.removed_count} "
            f"skipped={summary.skipped_count} errors={len(summary.errors)}"
        )
        if self.on_saved and (summary.saved_count or summary.removed_count):
            try:
                self.on_saved(grid)
            except Exception:
                # 저장은 이미 반영됨 (요약은 그대로 반환)
                logger.exception(f"on_saved hook failed for {class_id}/{subject_code}/{session}/{term}")
        return summary

    # ==========================================================
    # [VALIDATING] 삭제 대상이 아닌 행의 입력값 검증
    # ==========================================================
    def _validate(
        self, latest: Mapping[str, BulkGridRow], config: ScoringConfig, summary: ReconcileSummary
    ) -> Dict[str, Dict[str, float]]:
        parsed: Dict[str, Dict[str, float]] = {}
        weights = config.component_weights
        for student_id, row in latest.items():
            if row.marked_for_deletion:
                continue
            try:
                scores = self._parse_row(row, weights)
                self.engine.compute_total(scores, weights)
            except InvalidScoreError as e:
                summary.errors.append(RowError(student_id=student_id, reason=str(e), kind="invalid_score"))
                continue
            parsed[student_id] = scores
        return parsed

    def _parse_row(self, row: BulkGridRow, weights: Mapping[str, int]) -> Dict[str, float]:
        scores: Dict[str, float] = {}
        for component, raw in row.entered_scores.items():
            try:
                value = parse_entered(raw)
            except ValueError:
                raise InvalidScoreError(component, raw, weights.get(component), message=f"{component}: {raw!r} is not a number")
            if value is not None:
                scores[component] = value
        return scores

    # ==========================================================
    # [DIFFING] 생성 / 수정 / 삭제 / 변경 없음 분류
    # ==========================================================
    def _diff(
        self,
        latest: Mapping[str, BulkGridRow],
        parsed: Mapping[str, Dict[str, float]],
        existing: Mapping[str, ResultRecord],
        grid: GridKey,
        config: ScoringConfig,
        summary: ReconcileSummary,
    ) -> List[_Operation]:
        class_id, subject_code, session, term = grid
        operations: List[_Operation] = []

        for student_id, row in latest.items():
            stored = existing.get(student_id)

            if row.marked_for_deletion:
                if stored is None:
                    summary.skipped_count += 1
                else:
                    operations.append(_Operation("delete", stored.key()))
                continue

            if student_id not in parsed:
                continue  # 검증 실패 행

            scores = parsed[student_id]
            if not scores:
                # 점수를 모두 지운 것만으로는 삭제하지 않음
                summary.skipped_count += 1
                continue

            if stored is not None and not self._differs(scores, stored.component_scores):
                summary.skipped_count += 1
                continue

            # 키 길이 등 레코드 제약 위반은 해당 행만 실패 처리
            try:
                key = CompositeKey(
                    student_id=student_id, class_id=class_id, subject_code=subject_code, session=session, term=term
                )
                record = self.engine.grade_record(key, scores, config)
            except ValidationError as e:
                summary.errors.append(RowError(student_id=student_id, reason=_validation_reason(e), kind="invalid_score"))
                continue
            operations.append(_Operation("create" if stored is None else "update", key, record))

        return operations

    @staticmethod
    def _differs(entered: Mapping[str, float], stored: Mapping[str, float]) -> bool:
        # 빈 칸은 "미입력" - 저장값이 없거나 0이면 변경 아님
        for component in set(entered) | set(stored):
            new = entered.get(component)
            old = stored.get(component)
            if new is None:
                if old not in (None, 0):
                    return True
            elif old is None or float(old) != new:
                return True
        return False

    # ==========================================================
    # [EXECUTING] 행마다 저장소 호출 (실패해도 나머지 계속)
    # ==========================================================
    def _execute(self, operations: List[_Operation], summary: ReconcileSummary) -> None:
        for op in operations:
            try:
                if op.kind == "delete":
                    result = self.store.delete_result(op.key)
                else:
                    result = self.store.upsert_result(op.record)
            except Exception as e:
                logger.exception(f"Store call raised: {op.kind} student_id={op.key.student_id}")
                summary.errors.append(RowError(student_id=op.key.student_id, reason=str(e) or e.__class__.__name__))
                continue

            if not result.success:
                summary.errors.append(
                    RowError(student_id=op.key.student_id, reason=result.reason or "store operation failed")
                )
            elif op.kind == "delete":
                summary.removed_count += 1
            else:
                summary.saved_count += 1
                if op.kind == "create":
                    summary.created_count += 1
                else:
                    summary.updated_count += 1


def _validation_reason(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'record'}: {item['msg']}" for item in error.errors()
    )
