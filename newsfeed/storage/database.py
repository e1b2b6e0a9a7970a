"""Database operations for subscriptions and articles."""

from typing import Optional, List
from pathlib import Path

from sqlalchemy import func
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import structlog

from .models import SubscriptionModel, ArticleModel, init_db
from ..ingestion.interfaces import CanonicalArticle, FeedSubscription, ArticleStoreInterface
from ..config.settings import settings
from ..errors import StoreReadError, StoreWriteError

logger = structlog.get_logger()


class ArticleStorage(ArticleStoreInterface):
    """SQLAlchemy-backed storage for subscriptions and articles."""

    def __init__(self, database_url: str = None):
        if database_url is None:
            database_url = settings.database_url

        # Ensure data directory exists
        if database_url.startswith("sqlite:///"):
            db_path = database_url.replace("sqlite:///", "")
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.engine = init_db(database_url)
        self.Session = sessionmaker(bind=self.engine)

    # Subscriptions

    def list_active_subscriptions(self, user_id: str) -> List[FeedSubscription]:
        """Get the user's active subscriptions."""
        session = self.Session()
        try:
            models = session.query(SubscriptionModel)\
                .filter(SubscriptionModel.user_id == user_id)\
                .filter(SubscriptionModel.active == True)\
                .all()
            return [self._model_to_subscription(m) for m in models]
        except SQLAlchemyError as e:
            logger.error("subscriptions_load_failed", user_id=user_id, error=str(e))
            raise StoreReadError(f"Failed to load subscriptions for {user_id}: {e}") from e
        finally:
            session.close()

    def add_subscription(self, user_id: str, source_name: str, active: bool = True) -> FeedSubscription:
        """Create a subscription, or update the active flag if it exists."""
        session = self.Session()
        try:
            model = session.query(SubscriptionModel)\
                .filter(SubscriptionModel.user_id == user_id)\
                .filter(SubscriptionModel.name == source_name)\
                .first()
            if model is None:
                model = SubscriptionModel(user_id=user_id, name=source_name, active=active)
                session.add(model)
            else:
                model.active = active
            session.commit()
            logger.debug("subscription_saved", user_id=user_id, source=source_name, active=active)
            return self._model_to_subscription(model)
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreWriteError(f"Failed to save subscription: {e}") from e
        finally:
            session.close()

    def set_subscription_active(self, user_id: str, source_name: str, active: bool) -> bool:
        """Toggle a subscription. Returns False if it does not exist."""
        session = self.Session()
        try:
            model = session.query(SubscriptionModel)\
                .filter(SubscriptionModel.user_id == user_id)\
                .filter(SubscriptionModel.name == source_name)\
                .first()
            if model is None:
                return False
            model.active = active
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreWriteError(f"Failed to update subscription: {e}") from e
        finally:
            session.close()

    # Articles

    def get_by_url(self, url: str) -> Optional[CanonicalArticle]:
        """Get article by URL."""
        session = self.Session()
        try:
            model = session.query(ArticleModel)\
                .filter(ArticleModel.url == url)\
                .first()
            return self._model_to_article(model) if model else None
        except SQLAlchemyError as e:
            raise StoreReadError(f"Failed to look up {url}: {e}") from e
        finally:
            session.close()

    def exists_url(self, url: str) -> bool:
        """Check if an article with exactly this URL exists."""
        session = self.Session()
        try:
            return session.query(ArticleModel.id)\
                .filter(ArticleModel.url == url)\
                .first() is not None
        except SQLAlchemyError as e:
            raise StoreReadError(f"Failed to look up {url}: {e}") from e
        finally:
            session.close()

    def insert_articles(self, articles: List[CanonicalArticle]) -> List[CanonicalArticle]:
        """Insert a batch, skipping URLs that already exist.

        Returns the articles actually persisted, with ids and created_at set.
        """
        if not articles:
            return []

        session = self.Session()
        try:
            urls = [a.url for a in articles]
            existing = {
                row.url for row in session.query(ArticleModel.url)
                .filter(ArticleModel.url.in_(urls))
                .all()
            }

            pending = []
            seen = set(existing)
            for article in articles:
                if article.url in seen:
                    logger.debug("article_duplicate", url=article.url[:80])
                    continue
                seen.add(article.url)
                pending.append(article)

            models = [self._article_to_model(a) for a in pending]
            session.add_all(models)
            try:
                session.commit()
            except IntegrityError:
                # Another writer got in between the check and the commit
                session.rollback()
                logger.warning("batch_insert_conflict", rows=len(models))
                return self._insert_one_by_one(pending)

            inserted = [self._model_to_article(m) for m in models]
            logger.info("articles_inserted", count=len(inserted), total=len(articles))
            return inserted
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("articles_insert_failed", error=str(e))
            raise StoreWriteError(f"Failed to insert articles: {e}") from e
        finally:
            session.close()

    def _insert_one_by_one(self, articles: List[CanonicalArticle]) -> List[CanonicalArticle]:
        """Insert rows in separate transactions, dropping URL conflicts."""
        inserted = []
        for article in articles:
            session = self.Session()
            try:
                model = self._article_to_model(article)
                session.add(model)
                session.commit()
                inserted.append(self._model_to_article(model))
            except IntegrityError:
                session.rollback()
                logger.debug("article_duplicate", url=article.url[:80])
            finally:
                session.close()
        logger.info("articles_inserted", count=len(inserted), total=len(articles))
        return inserted

    def get_stats(self) -> dict:
        """Get database statistics."""
        session = self.Session()
        try:
            total = session.query(ArticleModel).count()
            subscriptions = session.query(SubscriptionModel).count()
            active = session.query(SubscriptionModel)\
                .filter(SubscriptionModel.active == True).count()

            by_topic = dict(
                session.query(ArticleModel.topic, func.count(ArticleModel.id))
                .group_by(ArticleModel.topic)
                .all()
            )

            return {
                "total_articles": total,
                "articles_by_topic": by_topic,
                "total_subscriptions": subscriptions,
                "active_subscriptions": active,
            }
        finally:
            session.close()

    def _article_to_model(self, article: CanonicalArticle) -> ArticleModel:
        return ArticleModel(
            title=article.title,
            summary=article.summary,
            source=article.source,
            author=article.author,
            topic=article.topic,
            url=article.url,
            image_url=article.image_url,
            published_at=article.published_at,
        )

    def _model_to_article(self, model: ArticleModel) -> CanonicalArticle:
        """Convert database model to CanonicalArticle."""
        return CanonicalArticle(
            id=model.id,
            title=model.title,
            summary=model.summary,
            source=model.source,
            author=model.author,
            topic=model.topic,
            url=model.url,
            image_url=model.image_url,
            published_at=model.published_at,
            created_at=model.created_at,
        )

    def _model_to_subscription(self, model: SubscriptionModel) -> FeedSubscription:
        return FeedSubscription(
            id=model.id,
            user_id=model.user_id,
            source_name=model.name,
            active=model.active,
        )
