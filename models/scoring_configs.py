from sqlalchemy import Column, Integer, Float, String, JSON, UniqueConstraint
from database.db import Base


class ScoringConfig(Base):
    __tablename__ = "scoring_configs"  # 학기별 배점/등급 기준 테이블
    __table_args__ = (UniqueConstraint("session", "term", name="uq_scoring_configs_period"),)

    id = Column(Integer, primary_key=True, index=True)     # 고유 ID (Primary Key)
    session = Column(String(20), nullable=False)           # 학년도
    term = Column(String(50), nullable=False)              # 학기
    component_weights = Column(JSON, nullable=False)       # {"ca": 10, "test": 20, "exam": 70}
    boundaries = Column(JSON, nullable=False)              # [{"letter": "A+", "min_score": 90, "remark": "..."}]
    pass_mark = Column(Float, nullable=False, default=40)  # 합격 기준 점수
