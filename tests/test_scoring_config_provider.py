import pytest

from schemas.scoring import GradeBoundary, ScoringConfig
from services.cache import TTLCache
from services.errors import ConfigurationError
from services.scoring_config_provider import SqlScoringConfigProvider, default_scoring_config


def test_falls_back_to_default_when_period_not_configured(db_session):
    provider = SqlScoringConfigProvider(db_session)

    config = provider.get_scoring_config("2024/2025", "1st Term")

    assert config.component_weights == {"ca": 10, "test": 20, "exam": 70}
    assert config.boundaries[0].letter == "A+"
    assert config.boundaries[-1].min_score == 0
    assert config.session == "2024/2025"


def test_saved_period_config_is_returned(db_session):
    provider = SqlScoringConfigProvider(db_session)
    custom = ScoringConfig(
        session="2024/2025",
        term="2nd Term",
        component_weights={"ca": 30, "exam": 70},
        boundaries=[GradeBoundary(letter="P", min_score=50, remark="Pass"), GradeBoundary(letter="F", min_score=0)],
        pass_mark=50,
    )

    provider.save_scoring_config(custom)
    loaded = provider.get_scoring_config("2024/2025", "2nd Term")

    assert loaded.component_weights == {"ca": 30, "exam": 70}
    assert [b.letter for b in loaded.boundaries] == ["P", "F"]
    assert loaded.pass_mark == 50
    # 다른 학기는 여전히 기본값
    assert provider.get_scoring_config("2024/2025", "1st Term").component_weights == {"ca": 10, "test": 20, "exam": 70}


def test_invalid_config_is_not_saved(db_session):
    provider = SqlScoringConfigProvider(db_session)
    broken = ScoringConfig(session="2024/2025", term="1st Term", boundaries=[GradeBoundary(letter="A", min_score=40)])

    with pytest.raises(ConfigurationError):
        provider.save_scoring_config(broken)
    assert provider.get_scoring_config("2024/2025", "1st Term").boundaries[0].letter == "A+"


def test_default_config_cannot_be_saved_without_period(db_session):
    with pytest.raises(ConfigurationError):
        SqlScoringConfigProvider(db_session).save_scoring_config(default_scoring_config())


def test_cache_is_invalidated_on_save(db_session):
    cache = TTLCache(ttl_seconds=300)
    provider = SqlScoringConfigProvider(db_session, cache)

    assert provider.get_scoring_config("2024/2025", "3rd Term").component_weights["exam"] == 70
    assert ("2024/2025", "3rd Term") in cache

    provider.save_scoring_config(
        ScoringConfig(session="2024/2025", term="3rd Term", component_weights={"ca": 40, "exam": 60})
    )

    assert provider.get_scoring_config("2024/2025", "3rd Term").component_weights == {"ca": 40, "exam": 60}
