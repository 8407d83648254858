from abc import ABC, abstractmethod
from typing import List

from schemas.results import CompositeKey, ResultRecord, StoreResult


class ResultsStore(ABC):
    """
    성적 저장소 인터페이스
    - 실패는 예외 대신 StoreResult(success=False, reason=...) 로 반환
    - 조회(fetch_*) 실패만 StoreOperationError 로 전파
    """

    @abstractmethod
    def fetch_results(self, class_id: str, subject_code: str, session: str, term: str) -> List[ResultRecord]: ...

    @abstractmethod
    def fetch_student_results(self, student_id: str, class_id: str, session: str, term: str) -> List[ResultRecord]: ...

    @abstractmethod
    def fetch_period_results(self, session: str, term: str) -> List[ResultRecord]: ...

    @abstractmethod
    def upsert_result(self, record: ResultRecord) -> StoreResult: ...

    @abstractmethod
    def delete_result(self, key: CompositeKey) -> StoreResult: ...
