from sqlalchemy import create_engine               # SQLAlchemy 엔진 생성 도구
from sqlalchemy.orm import declarative_base        # 모델의 Base 클래스
from sqlalchemy.orm import sessionmaker            # 세션 팩토리 함수
from sqlalchemy.pool import StaticPool

from config.settings import settings               # ✅ 환경변수 설정 파일 불러오기


def _engine_kwargs(url: str) -> dict:
    # SQLite 메모리 DB는 모든 커넥션이 같은 DB를 보도록 StaticPool 사용
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}


# ✅ 환경변수에서 DB 연결 URL을 불러와 엔진 생성
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

# ✅ 세션 팩토리: DB 연결에 사용할 세션 생성기 정의
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ✅ 모델 정의 시 상속할 Base 클래스 (Declarative 방식 사용)
Base = declarative_base()


# ✅ [공통] DB 세션 관리 (라우터 Depends 용)
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """테이블 생성 (마이그레이션 도구 없이 create_all 만 수행)"""
    from models import results, scoring_configs  # noqa: F401  - 모델 등록

    Base.metadata.create_all(bind=engine)
