import logging
from datetime import datetime

from mongoengine import NotUniqueError

from errors import ConflictError, InvalidInputError, NotFoundError, action
from models import Review, is_string_list, utcnow
from pagination import paginate

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    'rating': 'rating',
    'content': 'content',
    'tags': 'tags',
    'spoilerWarning': 'spoiler_warning',
    'isPublic': 'is_public',
}


def _validate_rating(rating):
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidInputError('Rating must be an integer between 1 and 5')


def _validate_content(content):
    if not isinstance(content, str) or not content.strip():
        raise InvalidInputError('Review content is required')


def _validate_tags(tags):
    if not is_string_list(tags):
        raise InvalidInputError('Tags must be a list of strings')


def _parse_date(value, field):
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f'{field} must be an ISO date')


@action('Could not create the review')
def create_review(data):
    for field in ('bookId', 'bookTitle', 'userId', 'userDisplayName'):
        if not data.get(field):
            raise InvalidInputError(f'{field} is required')
    _validate_rating(data.get('rating'))
    _validate_content(data.get('content'))
    if data.get('tags') is not None:
        _validate_tags(data['tags'])

    review = Review(
        book_id=data['bookId'],
        book_title=data['bookTitle'],
        book_thumbnail=data.get('bookThumbnail'),
        rating=data['rating'],
        content=data['content'],
        user_id=data['userId'],
        user_display_name=data['userDisplayName'],
        user_avatar=data.get('userAvatar'),
        tags=data.get('tags') or [],
        spoiler_warning=bool(data.get('spoilerWarning', False)),
    )
    try:
        review.save()
    except NotUniqueError:
        raise ConflictError('You have already reviewed this book')

    logger.info("Review %s created for book %s", review.public_id, review.book_id)
    return review


@action('Could not get the reviews')
def get_all_reviews():
    return list(Review.objects.order_by('-created_at'))


@action('Could not get the review')
def get_review_by_book_id(book_id, user_id=None):
    query = {'book_id': book_id}
    if user_id:
        query['user_id'] = user_id
    return Review.objects(**query).first()


@action('Could not get the review')
def get_review_by_id(review_id):
    return Review.objects(public_id=review_id).first()


@action('Could not get the reviews')
def find_reviews(filters=None, page=1, limit=20):
    filters = filters or {}
    query = {}
    if filters.get('bookId'):
        query['book_id'] = filters['bookId']
    if filters.get('userId'):
        query['user_id'] = filters['userId']
    if filters.get('rating') is not None:
        query['rating'] = int(filters['rating'])
    if filters.get('tags'):
        query['tags__all'] = list(filters['tags'])
    if filters.get('isPublic') is not None:
        query['is_public'] = bool(filters['isPublic'])
    if filters.get('dateFrom'):
        query['created_at__gte'] = _parse_date(filters['dateFrom'], 'dateFrom')
    if filters.get('dateTo'):
        query['created_at__lte'] = _parse_date(filters['dateTo'], 'dateTo')

    queryset = Review.objects(**query).order_by('-created_at')
    return paginate(queryset, page, limit)


@action('Could not update the review')
def update_review(review_id, data):
    updates = {'set__updated_at': utcnow(), 'set__is_edited': True}
    for key, field in UPDATABLE_FIELDS.items():
        if data.get(key) is None:
            continue
        if key == 'rating':
            _validate_rating(data[key])
        elif key == 'content':
            _validate_content(data[key])
        elif key == 'tags':
            _validate_tags(data[key])
        updates['set__' + field] = data[key]

    review = Review.objects(public_id=review_id).modify(new=True, **updates)
    if review is None:
        raise NotFoundError('Review not found')
    return review


@action('Could not delete the review')
def delete_review(review_id):
    return Review.objects(public_id=review_id).delete() > 0


def _increment(review_id, counter):
    review = Review.objects(public_id=review_id).modify(new=True, **{'inc__stats__' + counter: 1})
    if review is None:
        raise NotFoundError('Review not found')
    return review


@action('Could not update the likes')
def increment_likes(review_id):
    return _increment(review_id, 'likes')


@action('Could not update the dislikes')
def increment_dislikes(review_id):
    return _increment(review_id, 'dislikes')
