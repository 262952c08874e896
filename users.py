import logging

from mongoengine import DoesNotExist, NotUniqueError
from mongoengine.queryset.visitor import Q

from auth import hash_password, normalize_email
from errors import ConflictError, InvalidInputError, NotFoundError, action
from models import THEMES, BookList, Review, User, UserStats, utcnow
from pagination import paginate

logger = logging.getLogger(__name__)

NOTIFICATION_FLAGS = {
    'email': 'email',
    'push': 'push',
    'newReviews': 'new_reviews',
    'likes': 'likes',
}


@action('Could not create the user')
def create_user(data):
    email = normalize_email(data.get('email'))
    username = data.get('username')
    if User.objects(Q(email=email) | Q(username=username)).first():
        raise ConflictError('A user with that email or username already exists')

    user = User(
        email=email,
        username=username,
        display_name=data.get('displayName'),
        password=hash_password(data['password']),
        avatar=data.get('avatar'),
        bio=data.get('bio'),
    )
    try:
        user.save()
    except NotUniqueError:
        raise ConflictError('A user with that email or username already exists')
    return user


@action('Could not get the user')
def get_user_by_id(user_id):
    return User.objects(public_id=user_id).first()


@action('Could not get the user')
def get_user_by_email(email):
    return User.objects(email=normalize_email(email)).first()


@action('Could not get the user')
def get_user_by_username(username):
    return User.objects(username=username).first()


def _apply_preferences(user, preferences):
    if 'theme' in preferences:
        if preferences['theme'] not in THEMES:
            raise InvalidInputError('Theme must be one of: %s' % ', '.join(THEMES))
        user.preferences.theme = preferences['theme']
    if 'language' in preferences:
        user.preferences.language = preferences['language']
    notifications = preferences.get('notifications') or {}
    for key, field in NOTIFICATION_FLAGS.items():
        if key in notifications:
            setattr(user.preferences.notifications, field, bool(notifications[key]))


@action('Could not update the user')
def update_user(user_id, data):
    """Update profile fields and merge a partial ``preferences`` dict."""
    try:
        user = User.objects.get(public_id=user_id)
    except DoesNotExist:
        raise NotFoundError('User not found')

    if data.get('displayName') is not None:
        user.display_name = data['displayName']
    if data.get('avatar') is not None:
        user.avatar = data['avatar']
    if data.get('bio') is not None:
        user.bio = data['bio']
    if data.get('preferences'):
        _apply_preferences(user, data['preferences'])

    user.updated_at = utcnow()
    user.save()
    return user


@action('Could not delete the user')
def delete_user(user_id):
    updated = User.objects(public_id=user_id).update_one(
        set__is_active=False,
        set__updated_at=utcnow(),
    )
    if updated:
        logger.info("Deactivated user %s", user_id)
    return bool(updated)


@action('Could not get the users')
def get_all_users(page=1, limit=20):
    queryset = User.objects(is_active=True).order_by('-created_at')
    result = paginate(queryset, page, limit)
    return {"users": result["data"], "total": result["pagination"]["total"], "pagination": result["pagination"]}


@action('Could not compute the user stats')
def refresh_user_stats(user_id):
    if not User.objects(public_id=user_id).count():
        raise NotFoundError('User not found')

    totals = list(Review.objects(user_id=user_id).aggregate([
        {'$group': {
            '_id': None,
            'reviews': {'$sum': 1},
            'likes': {'$sum': '$stats.likes'},
            'dislikes': {'$sum': '$stats.dislikes'},
        }},
    ]))
    totals = totals[0] if totals else {}

    favorites = BookList.objects(user_id=user_id, list_type='favorites').first()
    books_read = sum(lst.book_count for lst in BookList.objects(user_id=user_id, list_type='read'))

    stats = UserStats(
        total_reviews=totals.get('reviews', 0),
        total_likes=totals.get('likes', 0),
        total_dislikes=totals.get('dislikes', 0),
        books_read=books_read,
        books_favorited=favorites.book_count if favorites else 0,
    )
    User.objects(public_id=user_id).update_one(set__stats=stats)
    return stats
