"""Database storage and models."""

from .database import ArticleStorage
from .models import SubscriptionModel, ArticleModel, init_db
from .factory import get_article_storage

__all__ = ["ArticleStorage", "SubscriptionModel", "ArticleModel", "init_db", "get_article_storage"]
