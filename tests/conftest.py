import os

# 테스트는 메모리 SQLite 사용 (settings 로드 전에 지정)
os.environ["DB_URL_OVERRIDE"] = "sqlite://"
os.environ["RESULTS_BACKEND"] = "sql"
os.environ["ENV"] = "test"

from typing import Dict, List, Optional, Set

import pytest

from database.db import Base, SessionLocal, engine, init_db
from schemas.results import CompositeKey, ResultRecord, StoreResult
from services.class_report import summary_cache
from services.results_store.base import ResultsStore
from services.scoring_config_provider import scoring_config_cache


class FakeResultsStore(ResultsStore):
    """호출 기록 + 행 단위 실패 주입이 가능한 메모리 저장소"""

    def __init__(self, records: Optional[List[ResultRecord]] = None):
        self.records: Dict[CompositeKey, ResultRecord] = {r.key(): r for r in records or []}
        self.calls: List[tuple] = []
        self.fail_for: Set[str] = set()
        self.raise_for: Set[str] = set()

    def fetch_results(self, class_id, subject_code, session, term):
        self.calls.append(("fetch", class_id, subject_code, session, term))
        return [
            r.model_copy(deep=True)
            for k, r in self.records.items()
            if (k.class_id, k.subject_code, k.session, k.term) == (class_id, subject_code, session, term)
        ]

    def fetch_student_results(self, student_id, class_id, session, term):
        self.calls.append(("fetch_student", student_id, class_id, session, term))
        return [
            r.model_copy(deep=True)
            for k, r in self.records.items()
            if (k.student_id, k.class_id, k.session, k.term) == (student_id, class_id, session, term)
        ]

    def fetch_period_results(self, session, term):
        self.calls.append(("fetch_period", session, term))
        return [r.model_copy(deep=True) for k, r in self.records.items() if (k.session, k.term) == (session, term)]

    def upsert_result(self, record):
        self.calls.append(("upsert", record.key()))
        if record.student_id in self.raise_for:
            raise ConnectionError("connection reset")
        if record.student_id in self.fail_for:
            return StoreResult.fail("conflict")
        self.records[record.key()] = record.model_copy(deep=True)
        return StoreResult.ok()

    def delete_result(self, key):
        self.calls.append(("delete", key))
        if key.student_id in self.raise_for:
            raise ConnectionError("connection reset")
        if key.student_id in self.fail_for:
            return StoreResult.fail("conflict")
        if self.records.pop(key, None) is None:
            return StoreResult.fail("Result not found")
        return StoreResult.ok()

    def write_calls(self):
        return [c for c in self.calls if c[0] in ("upsert", "delete")]


GRID = dict(class_id="JSS 1A", subject_code="MTH101", session="2024/2025", term="1st Term")


def make_record(student_id: str, **scores) -> ResultRecord:
    total = sum(scores.values())
    return ResultRecord(student_id=student_id, component_scores=scores, total_score=total, **GRID)


@pytest.fixture(autouse=True)
def _clear_caches():
    scoring_config_cache.clear()
    summary_cache.clear()
    yield
    scoring_config_cache.clear()
    summary_cache.clear()


@pytest.fixture
def db_session():
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app) as c:
        yield c
    Base.metadata.drop_all(bind=engine)
