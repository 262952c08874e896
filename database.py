"""MongoDB connection and maintenance helpers."""
import logging
from datetime import datetime, timezone

from mongoengine import connect, disconnect

from auth import hash_password
from models import COLLECTIONS, Review, ReviewStats, User, generate_id, utcnow

logger = logging.getLogger(__name__)

ANONYMOUS_USER_ID = 'anonymous-user'
ANONYMOUS_DISPLAY_NAME = 'Anonymous user'


def connect_db(app):
    settings = dict(app.config['MONGODB_SETTINGS'])
    if not settings.get('host'):
        raise RuntimeError('Please add MONGODB_URI to your environment variables')
    logger.info("Connecting to MongoDB database %s", settings.get('db'))
    return connect(**settings)


def disconnect_db():
    disconnect()


def ensure_indexes():
    for name, document in COLLECTIONS.items():
        document.ensure_indexes()
        logger.info("Indexes ensured for %s", name)


def get_database_stats():
    counts = {name: document.objects.count() for name, document in COLLECTIONS.items()}
    counts['total'] = sum(counts.values())
    return counts


def clear_test_data(env_name):
    if env_name != 'development':
        raise RuntimeError('Test data can only be cleared in development')
    for document in COLLECTIONS.values():
        document.objects.delete()
    logger.warning("All collections cleared")


def _parse_timestamp(value):
    if not value:
        return utcnow()
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _ensure_placeholder_user(user_id, display_name):
    user = User.objects(public_id=user_id).first()
    if user is not None:
        return user
    # Legacy reviews were anonymous; the placeholder account can never log in
    user = User(
        public_id=user_id,
        email=f"temp-{user_id}@example.com",
        username=f"user-{user_id}",
        display_name=display_name,
        password=hash_password(generate_id()),
    )
    user.save()
    return user


def migrate_legacy_reviews(data):
    """Import reviews exported by the old browser-storage client.

    ``data`` is ``{"reviews": [...]}``. Each review failing to import is
    logged and skipped. Returns the imported reviews.
    """
    if not data or not data.get('reviews'):
        logger.info("No legacy reviews to migrate")
        return []

    migrated = []
    for legacy in data['reviews']:
        try:
            user_id = legacy.get('userId') or ANONYMOUS_USER_ID
            display_name = legacy.get('userDisplayName') or ANONYMOUS_DISPLAY_NAME
            _ensure_placeholder_user(user_id, display_name)

            review = Review(
                public_id=legacy.get('id') or generate_id(),
                book_id=legacy['bookId'],
                book_title=legacy['bookTitle'],
                book_thumbnail=legacy.get('bookThumbnail'),
                rating=int(legacy['rating']),
                content=legacy['content'],
                user_id=user_id,
                user_display_name=display_name,
                stats=ReviewStats(
                    likes=int(legacy.get('likes') or 0),
                    dislikes=int(legacy.get('dislikes') or 0),
                ),
                tags=legacy.get('tags') or [],
                spoiler_warning=bool(legacy.get('spoilerWarning')),
                created_at=_parse_timestamp(legacy.get('createdAt')),
                updated_at=utcnow(),
            )
            review.save()
            migrated.append(review)
        except Exception:
            logger.exception("Error migrating review %s", legacy.get('id'))

    logger.info("Migrated %d legacy reviews", len(migrated))
    return migrated
