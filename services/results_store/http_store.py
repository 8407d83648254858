import logging
from typing import Any, Dict, List, Optional

import httpx

from schemas.results import CompositeKey, ResultRecord, StoreResult
from services.errors import StoreOperationError
from services.results_store.base import ResultsStore

logger = logging.getLogger(__name__)


class HttpResultsStore(ResultsStore):
    """
    원격 REST API 기반 성적 저장소
    - GET/PUT/DELETE {base}/results/, GET {base}/results/student, GET {base}/results/period
    - 응답 형식: {"success", "data", "message"} / {"success": false, "error": {...}}
    - 타임아웃·HTTP 오류는 행 단위 실패(StoreResult)로 반환
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self.client = client or httpx.Client(base_url=self.base_url, timeout=timeout, headers=headers)

    def close(self):
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """공통 HTTP 요청 처리 - 실패 시 StoreOperationError"""
        try:
            response = self.client.request(method, path, **kwargs)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException:
            raise StoreOperationError("timeout")
        except httpx.HTTPStatusError as e:
            raise StoreOperationError(f"HTTP {e.response.status_code}: {_error_message(e.response)}")
        except httpx.HTTPError as e:
            raise StoreOperationError(f"connection failed: {e}")
        except ValueError:
            raise StoreOperationError("invalid JSON response")

        if not body.get("success", False):
            error = body.get("error") or {}
            raise StoreOperationError(error.get("message") or body.get("message") or "request rejected")
        return body

    # ✅ [READ]
    def fetch_results(self, class_id: str, subject_code: str, session: str, term: str) -> List[ResultRecord]:
        params = {"class_id": class_id, "subject_code": subject_code, "session": session, "term": term}
        body = self._request("GET", "/results/", params=params)
        return [ResultRecord.model_validate(item) for item in body.get("data") or []]

    def fetch_student_results(self, student_id: str, class_id: str, session: str, term: str) -> List[ResultRecord]:
        params = {"student_id": student_id, "class_id": class_id, "session": session, "term": term}
        body = self._request("GET", "/results/student", params=params)
        return [ResultRecord.model_validate(item) for item in (body.get("data") or {}).get("results") or []]

    def fetch_period_results(self, session: str, term: str) -> List[ResultRecord]:
        body = self._request("GET", "/results/period", params={"session": session, "term": term})
        return [ResultRecord.model_validate(item) for item in body.get("data") or []]

    # ✅ [UPSERT]
    def upsert_result(self, record: ResultRecord) -> StoreResult:
        try:
            self._request("PUT", "/results/", json=record.model_dump(mode="json"))
        except StoreOperationError as e:
            logger.warning(f"Remote upsert failed: student_id={record.student_id} ({e.reason})")
            return StoreResult.fail(e.reason)
        return StoreResult.ok()

    # ✅ [DELETE]
    def delete_result(self, key: CompositeKey) -> StoreResult:
        try:
            self._request("DELETE", "/results/", params=key.model_dump())
        except StoreOperationError as e:
            logger.warning(f"Remote delete failed: student_id={key.student_id} ({e.reason})")
            return StoreResult.fail(e.reason)
        return StoreResult.ok()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("detail"):
            return str(body["detail"])
    return response.text[:200]
