"""
services/scoring_config_provider.py

- 학기(session, term)별 배점/등급표 제공
- 학기별 설정이 없으면 시스템 기본값(settings)으로 대체
- DB 조회 결과는 TTL 캐시에 보관, 저장 시 해당 키만 무효화
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from config.settings import settings
from models.scoring_configs import ScoringConfig as ScoringConfigModel
from schemas.scoring import DEFAULT_BOUNDARIES, GradeBoundary, ScoringConfig
from services.cache import TTLCache
from services.errors import ConfigurationError
from services.grading_engine import GradingEngine

logger = logging.getLogger(__name__)

PeriodKey = Tuple[Optional[str], Optional[str]]

# ✅ 배점 설정 캐시 (키: (session, term))
scoring_config_cache: TTLCache[PeriodKey, ScoringConfig] = TTLCache(
    ttl_seconds=settings.SCORING_CONFIG_CACHE_TTL,
    max_entries=settings.CACHE_MAX_ENTRIES,
)


def default_scoring_config(session: Optional[str] = None, term: Optional[str] = None) -> ScoringConfig:
    return ScoringConfig(
        session=session,
        term=term,
        component_weights=dict(settings.DEFAULT_COMPONENT_WEIGHTS),
        boundaries=[b.model_copy() for b in DEFAULT_BOUNDARIES],
        pass_mark=settings.DEFAULT_PASS_MARK,
    )


class ScoringConfigProvider(ABC):
    @abstractmethod
    def get_scoring_config(self, session: Optional[str], term: Optional[str]) -> ScoringConfig: ...


class StaticScoringConfigProvider(ScoringConfigProvider):
    """고정된 설정 하나만 반환 (테스트/임베딩용)"""

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or default_scoring_config()

    def get_scoring_config(self, session: Optional[str], term: Optional[str]) -> ScoringConfig:
        return self.config.model_copy(deep=True)


class SqlScoringConfigProvider(ScoringConfigProvider):
    def __init__(self, db: Session, cache: Optional[TTLCache[PeriodKey, ScoringConfig]] = None):
        self.db = db
        self.cache = cache

    def _load(self, session: Optional[str], term: Optional[str]) -> ScoringConfig:
        row = None
        if session and term:
            row = (
                self.db.query(ScoringConfigModel)
                .filter(ScoringConfigModel.session == session, ScoringConfigModel.term == term)
                .first()
            )
        if row is None:
            logger.debug(f"No scoring config for {session}/{term}, using default")
            return default_scoring_config(session, term)
        return ScoringConfig(
            session=row.session,
            term=row.term,
            component_weights=dict(row.component_weights),
            boundaries=[GradeBoundary.model_validate(b) for b in row.boundaries],
            pass_mark=row.pass_mark,
        )

    def get_scoring_config(self, session: Optional[str], term: Optional[str]) -> ScoringConfig:
        if self.cache is None:
            return self._load(session, term)
        config = self.cache.get_or_set((session, term), lambda: self._load(session, term))
        return config.model_copy(deep=True)

    # ✅ [UPSERT] 학기별 설정 저장 (검증 통과 시에만)
    def save_scoring_config(self, config: ScoringConfig, engine: Optional[GradingEngine] = None) -> ScoringConfig:
        if not config.session or not config.term:
            raise ConfigurationError("session and term are required to store a scoring config")
        (engine or GradingEngine()).validate(config)

        row = (
            self.db.query(ScoringConfigModel)
            .filter(ScoringConfigModel.session == config.session, ScoringConfigModel.term == config.term)
            .first()
        )
        if row is None:
            row = ScoringConfigModel(session=config.session, term=config.term)
            self.db.add(row)
        row.component_weights = dict(config.component_weights)
        row.boundaries = [b.model_dump() for b in config.boundaries]
        row.pass_mark = config.pass_mark
        self.db.commit()

        if self.cache is not None:
            self.cache.invalidate((config.session, config.term))
        logger.info(f"Scoring config saved: {config.session}/{config.term}")
        return config
