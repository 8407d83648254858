from sqlalchemy import Column, Integer, Float, String, DateTime, JSON, UniqueConstraint
from database.db import Base


class Result(Base):
    __tablename__ = "results"  # 과목별 성적(CA/Test/Exam) 테이블
    __table_args__ = (
        # 복합키 (학생, 반, 과목, 학년도, 학기) 당 한 건만 존재
        UniqueConstraint("student_id", "class_id", "subject_code", "session", "term", name="uq_results_composite"),
    )

    id = Column(Integer, primary_key=True, index=True)          # 성적 고유 ID (Primary Key)
    student_id = Column(String(20), nullable=False, index=True)  # 학생 ID (예: STU010)
    class_id = Column(String(40), nullable=False)               # 반 (예: JSS 1A)
    subject_code = Column(String(20), nullable=False)           # 과목 코드 (예: MTH101)
    session = Column(String(20), nullable=False)                # 학년도 (예: 2024/2025)
    term = Column(String(50), nullable=False)                   # 학기 (예: 1st Term)
    component_scores = Column(JSON, nullable=False, default=dict)  # {"ca": 8, "test": 15, "exam": 60}
    total_score = Column(Float, nullable=False, default=0)      # 합계 점수
    grade = Column(String(5))                                   # 등급 (예: A+, B)
    percentage = Column(Float)                                  # 만점 대비 백분율
    remark = Column(String(255))                                # 등급 코멘트
    updated_at = Column(DateTime)                               # 마지막 저장 시각 (UTC)
