"""SQLAlchemy models for the newsfeed database."""

from datetime import datetime

from sqlalchemy import create_engine, Column, Integer, String, Text, Boolean, DateTime, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SubscriptionModel(Base):
    """A user's subscription to a named feed source."""
    __tablename__ = "sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_sources_user_active', 'user_id', 'active'),
        Index('idx_sources_user_name', 'user_id', 'name', unique=True),
    )


class ArticleModel(Base):
    """Database model for canonical articles."""
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(String(200), nullable=False)
    summary = Column(Text)
    source = Column(String(255), nullable=False)
    author = Column(String(255))
    topic = Column(String(50))

    # Deduplication key
    url = Column(String(2048), unique=True, nullable=False)

    image_url = Column(String(2048))
    published_at = Column(String(255))  # Raw feed date string
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_articles_source', 'source'),
        Index('idx_articles_topic', 'topic'),
    )


def init_db(database_url: str):
    """Initialize database and create all tables."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Store calls run in executor threads
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return engine
