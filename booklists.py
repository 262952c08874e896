"""Book lists: user shelves plus the reserved per-user favorites list."""
import logging
from collections import Counter

from mongoengine import NotUniqueError

from errors import ConflictError, InvalidInputError, NotFoundError, action
from models import LIST_TYPES, BookList, BookListItem, generate_id, is_string_list, utcnow
from pagination import paginate

logger = logging.getLogger(__name__)

FAVORITES = 'favorites'
FAVORITES_NAME = 'Favorites'
FAVORITES_DESCRIPTION = 'My favorite books'

LIST_FIELDS = {
    'name': 'name',
    'description': 'description',
    'isPublic': 'is_public',
}

ITEM_FIELDS = {
    'notes': 'notes',
    'rating': 'rating',
    'readDate': 'read_date',
    'progress': 'progress',
}


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_item_values(data):
    rating = data.get('rating')
    if rating is not None and (not _is_int(rating) or not 1 <= rating <= 5):
        raise InvalidInputError('Rating must be an integer between 1 and 5')
    progress = data.get('progress')
    if progress is not None and (not _is_int(progress) or not 0 <= progress <= 100):
        raise InvalidInputError('Progress must be an integer between 0 and 100')


def _build_item(data):
    if not data.get('bookId') or not data.get('bookTitle'):
        raise InvalidInputError('bookId and bookTitle are required')
    for key in ('bookAuthors', 'categories'):
        if data.get(key) is not None and not is_string_list(data[key]):
            raise InvalidInputError(f'{key} must be a list of strings')
    _validate_item_values(data)
    return BookListItem(
        book_id=data['bookId'],
        book_title=data['bookTitle'],
        book_thumbnail=data.get('bookThumbnail'),
        book_authors=data.get('bookAuthors') or [],
        categories=data.get('categories') or [],
        notes=data.get('notes'),
        rating=data.get('rating'),
        read_date=data.get('readDate'),
        progress=data.get('progress'),
    )


@action('Could not create the list')
def create_book_list(data):
    list_type = data.get('type')
    if list_type not in LIST_TYPES:
        raise InvalidInputError('type must be one of: %s' % ', '.join(LIST_TYPES))
    if list_type == FAVORITES:
        raise InvalidInputError('The favorites list is created automatically')
    if not data.get('userId') or not (data.get('name') or '').strip():
        raise InvalidInputError('userId and name are required')

    book_list = BookList(
        user_id=data['userId'],
        name=data['name'].strip(),
        description=data.get('description'),
        list_type=list_type,
        is_public=bool(data.get('isPublic', False)),
    )
    book_list.save()
    return book_list


@action("Could not get the user's lists")
def get_user_book_lists(user_id, list_type=None):
    query = {'user_id': user_id}
    if list_type:
        query['list_type'] = list_type
    return list(BookList.objects(**query).order_by('-created_at'))


@action('Could not get the list')
def get_book_list_by_id(list_id):
    return BookList.objects(public_id=list_id).first()


@action('Could not update the list')
def update_book_list(list_id, data):
    updates = {'set__updated_at': utcnow()}
    for key, field in LIST_FIELDS.items():
        if data.get(key) is not None:
            updates['set__' + field] = data[key]
    if 'set__name' in updates:
        if not isinstance(updates['set__name'], str) or not updates['set__name'].strip():
            raise InvalidInputError('name cannot be empty')
        updates['set__name'] = updates['set__name'].strip()

    book_list = BookList.objects(public_id=list_id).modify(new=True, **updates)
    if book_list is None:
        raise NotFoundError('List not found')
    return book_list


@action('Could not add the book to the list')
def add_book_to_list(list_id, book_data):
    item = _build_item(book_data)
    # The filter only matches while the book is absent, so a concurrent add cannot push it twice
    book_list = BookList.objects(public_id=list_id, books__book_id__ne=item.book_id).modify(
        new=True,
        push__books=item,
        inc__book_count=1,
        set__updated_at=utcnow(),
    )
    if book_list is None:
        if BookList.objects(public_id=list_id).count():
            raise ConflictError('The book is already in this list')
        raise NotFoundError('List not found')
    return book_list


@action('Could not update the book in the list')
def update_book_in_list(list_id, book_id, data):
    _validate_item_values(data)
    changes = {'updated_at': utcnow()}
    for key, field in ITEM_FIELDS.items():
        if data.get(key) is not None:
            changes['books.$.' + field] = data[key]

    updated = BookList.objects(public_id=list_id, books__book_id=book_id).update_one(
        __raw__={'$set': changes},
    )
    if not updated:
        raise NotFoundError('List or book not found')
    return BookList.objects.get(public_id=list_id)


@action('Could not remove the book from the list')
def remove_book_from_list(list_id, book_id):
    # Matching on the book keeps book_count in step with the array
    book_list = BookList.objects(public_id=list_id, books__book_id=book_id).modify(
        new=True,
        __raw__={
            '$pull': {'books': {'book_id': book_id}},
            '$inc': {'book_count': -1},
            '$set': {'updated_at': utcnow()},
        },
    )
    if book_list is None:
        raise NotFoundError('List or book not found')
    return book_list


@action('Could not delete the list')
def delete_book_list(list_id):
    book_list = BookList.objects(public_id=list_id).first()
    if book_list is None:
        return False
    if book_list.is_default:
        raise InvalidInputError('Default lists cannot be deleted')
    book_list.delete()
    return True


@action('Could not get the public lists')
def get_public_book_lists(filters=None, page=1, limit=20):
    filters = filters or {}
    query = {'is_public': True}
    if filters.get('userId'):
        query['user_id'] = filters['userId']
    if filters.get('type'):
        query['list_type'] = filters['type']
    if filters.get('bookId'):
        query['books__book_id'] = filters['bookId']

    queryset = BookList.objects(**query).order_by('-updated_at')
    result = paginate(queryset, page, limit)
    return {"lists": result["data"], "total": result["pagination"]["total"], "pagination": result["pagination"]}


@action('Could not check whether the book is in the list')
def is_book_in_list(user_id, book_id, list_type=None):
    query = {'user_id': user_id, 'books__book_id': book_id}
    if list_type:
        query['list_type'] = list_type
    book_list = BookList.objects(**query).first()
    return {
        "isInList": book_list is not None,
        "listId": book_list.public_id if book_list else None,
    }


def _upsert_favorites(user_id):
    now = utcnow()
    return BookList.objects(user_id=user_id, list_type=FAVORITES).modify(
        upsert=True,
        new=True,
        set_on_insert__public_id=generate_id(),
        set_on_insert__name=FAVORITES_NAME,
        set_on_insert__description=FAVORITES_DESCRIPTION,
        set_on_insert__is_public=False,
        set_on_insert__is_default=True,
        set_on_insert__created_at=now,
        set_on_insert__updated_at=now,
    )


@action('Could not get or create the favorites list')
def get_or_create_favorites_list(user_id):
    try:
        return _upsert_favorites(user_id)
    except NotUniqueError:
        # A concurrent first call inserted it; the unique index kept it single
        return BookList.objects.get(user_id=user_id, list_type=FAVORITES)


@action('Could not add the book to favorites')
def add_to_favorites(user_id, book_data):
    favorites = get_or_create_favorites_list(user_id)
    try:
        add_book_to_list(favorites.public_id, book_data)
    except ConflictError:
        return {"success": False, "message": 'The book is already in your favorites'}
    return {"success": True, "message": 'Book added to favorites'}


@action('Could not remove the book from favorites')
def remove_from_favorites(user_id, book_id):
    favorites = get_or_create_favorites_list(user_id)
    try:
        remove_book_from_list(favorites.public_id, book_id)
    except NotFoundError:
        return {"success": False, "message": 'The book is not in your favorites'}
    return {"success": True, "message": 'Book removed from favorites'}


def is_book_in_favorites(user_id, book_id):
    try:
        return is_book_in_list(user_id, book_id, FAVORITES)["isInList"]
    except Exception:
        logger.exception("Error checking favorites for user %s", user_id)
        return False


@action('Could not get the favorite categories')
def get_favorite_categories(user_id, limit=5):
    favorites = BookList.objects(user_id=user_id, list_type=FAVORITES).first()
    if favorites is None:
        return []
    counts = Counter(category for item in favorites.books for category in item.categories)
    return [category for category, _ in counts.most_common(limit)]
