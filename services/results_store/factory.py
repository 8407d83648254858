from sqlalchemy.orm import Session

from config.settings import settings
from services.results_store.base import ResultsStore
from services.results_store.http_store import HttpResultsStore
from services.results_store.sql_store import SqlResultsStore


def get_results_store(db: Session) -> ResultsStore:
    """
    RESULTS_BACKEND 설정에 따라 저장소 선택
    - "sql"  : 로컬 DB (기본값)
    - "http" : 원격 REST API
    """
    if settings.RESULTS_BACKEND == "http":
        return HttpResultsStore(
            base_url=settings.RESULTS_API_BASE_URL,
            token=settings.RESULTS_API_TOKEN,
            timeout=settings.RESULTS_API_TIMEOUT,
        )
    return SqlResultsStore(db)
