from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from rastuci import config

Base = declarative_base()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite is shared between the request threads of the dev server
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(config.DATABASE_URL, **_engine_kwargs(config.DATABASE_URL))

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Import every model so the metadata is complete, then create tables."""
    import rastuci.models  # noqa: F401
    from sqlalchemy.orm import configure_mappers

    configure_mappers()
    Base.metadata.create_all(bind=bind or engine)
