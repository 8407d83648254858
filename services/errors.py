from typing import Optional


class ResultsError(Exception):
    """성적 처리 관련 예외의 공통 부모"""
    code = "RESULTS_ERROR"
    status_code = 400


class InvalidScoreError(ResultsError):
    """항목 점수가 음수이거나 배점(만점)을 초과한 경우"""
    code = "INVALID_SCORE"
    status_code = 422

    def __init__(self, component: str, value, maximum: Optional[float] = None, message: Optional[str] = None):
        self.component = component
        self.value = value
        self.maximum = maximum
        if message is None:
            if maximum is None:
                message = f"{component}: unknown score component"
            else:
                message = f"{component}: score {value} must be between 0 and {maximum}"
        super().__init__(message)


class ConfigurationError(ResultsError):
    """배점/등급표가 비어 있거나 잘못 구성된 경우 (일괄 저장 전체 중단)"""
    code = "CONFIGURATION_ERROR"
    status_code = 422


class StoreOperationError(ResultsError):
    """저장소 단건 호출 실패 (네트워크, 충돌, 저장소 검증 등)"""
    code = "STORE_OPERATION_FAILED"
    status_code = 502

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class SaveInProgressError(ResultsError):
    """같은 그리드에 대해 이전 저장이 아직 끝나지 않은 경우"""
    code = "SAVE_IN_PROGRESS"
    status_code = 409
