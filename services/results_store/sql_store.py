import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.results import Result as ResultModel
from schemas.results import CompositeKey, ResultRecord, StoreResult
from services.errors import StoreOperationError
from services.results_store.base import ResultsStore

logger = logging.getLogger(__name__)


class SqlResultsStore(ResultsStore):
    """로컬 DB(SQLAlchemy) 기반 성적 저장소 - 복합키 기준 upsert"""

    def __init__(self, db: Session):
        self.db = db

    def _find(self, key: CompositeKey) -> Optional[ResultModel]:
        return (
            self.db.query(ResultModel)
            .filter(
                ResultModel.student_id == key.student_id,
                ResultModel.class_id == key.class_id,
                ResultModel.subject_code == key.subject_code,
                ResultModel.session == key.session,
                ResultModel.term == key.term,
            )
            .first()
        )

    # ✅ [READ] 반/과목/학년도/학기 성적 목록
    def fetch_results(self, class_id: str, subject_code: str, session: str, term: str) -> List[ResultRecord]:
        return self._fetch_where(
            ResultModel.class_id == class_id,
            ResultModel.subject_code == subject_code,
            ResultModel.session == session,
            ResultModel.term == term,
            order_by=(ResultModel.student_id,),
        )

    # ✅ [READ] 한 학생의 과목별 성적 (반/학년도/학기)
    def fetch_student_results(self, student_id: str, class_id: str, session: str, term: str) -> List[ResultRecord]:
        return self._fetch_where(
            ResultModel.student_id == student_id,
            ResultModel.class_id == class_id,
            ResultModel.session == session,
            ResultModel.term == term,
            order_by=(ResultModel.subject_code,),
        )

    # ✅ [READ] 학년도/학기 전체 성적 (전 반, 전 과목)
    def fetch_period_results(self, session: str, term: str) -> List[ResultRecord]:
        return self._fetch_where(
            ResultModel.session == session,
            ResultModel.term == term,
            order_by=(ResultModel.class_id, ResultModel.student_id, ResultModel.subject_code),
        )

    def _fetch_where(self, *criteria, order_by=()) -> List[ResultRecord]:
        try:
            rows = self.db.query(ResultModel).filter(*criteria).order_by(*order_by).all()
        except SQLAlchemyError as e:
            logger.error(f"Result fetch failed: {e}")
            raise StoreOperationError(f"fetch failed: {e}") from e
        return [ResultRecord.model_validate(row) for row in rows]

    # ✅ [UPSERT] 복합키가 있으면 수정, 없으면 생성
    def upsert_result(self, record: ResultRecord) -> StoreResult:
        try:
            row = self._find(record.key())
            if row is None:
                row = ResultModel(**record.key().model_dump())
                self.db.add(row)
            row.component_scores = dict(record.component_scores)
            row.total_score = record.total_score
            row.grade = record.grade
            row.percentage = record.percentage
            row.remark = record.remark
            row.updated_at = record.updated_at or datetime.now(timezone.utc)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Result upsert failed: student_id={record.student_id} ({e})")
            return StoreResult.fail(f"database error: {e.__class__.__name__}")
        return StoreResult.ok()

    # ✅ [DELETE] 복합키 기준 삭제
    def delete_result(self, key: CompositeKey) -> StoreResult:
        try:
            row = self._find(key)
            if row is None:
                return StoreResult.fail("Result not found")
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Result delete failed: student_id={key.student_id} ({e})")
            return StoreResult.fail(f"database error: {e.__class__.__name__}")
        return StoreResult.ok()
