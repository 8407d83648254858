"""
services/cache.py

- 키 단위 만료(TTL) 캐시
- 각 캐시 인스턴스가 ttl_seconds / max_entries 를 명시 (만료 정책은 캐시마다 다름)
  * 배점 설정 캐시: (session, term) 키, settings.SCORING_CONFIG_CACHE_TTL
  * 반 성적 요약 캐시: (class_id, subject_code, session, term) 키, settings.SUMMARY_CACHE_TTL
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    def __init__(self, ttl_seconds: float, max_entries: int = 512, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be greater than 0")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[K, Tuple[float, V]]" = OrderedDict()
        self._lock = threading.RLock()
        self._generation = 0  # invalidate / clear 마다 증가

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            # 가장 오래 저장된 항목부터 제거
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def get_or_set(self, key: K, factory: Callable[[], V]) -> V:
        """
        캐시에 없으면 factory() 결과를 저장 후 반환
        - factory 는 잠금 밖에서 실행 (느린 조회가 다른 키를 막지 않음)
        - 실행 중 무효화가 있었으면 결과를 반환만 하고 저장하지 않음
        """
        with self._lock:
            value = self.get(key)
            if value is not None:
                return value
            generation = self._generation

        value = factory()

        with self._lock:
            if generation == self._generation:
                self.set(key, value)
        return value

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._generation += 1
            self._entries.pop(key, None)

    def invalidate_where(self, predicate: Callable[[K], bool]) -> int:
        with self._lock:
            self._generation += 1
            stale = [key for key in self._entries if predicate(key)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at, _ in self._entries.values() if now < expires_at)

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None
