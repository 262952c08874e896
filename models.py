import time
import uuid
from datetime import datetime, timezone

from mongoengine import (
    BooleanField,
    DateTimeField,
    Document,
    EmbeddedDocument,
    EmbeddedDocumentField,
    EmbeddedDocumentListField,
    IntField,
    ListField,
    StringField,
)

THEMES = ('light', 'dark', 'auto')
VOTE_TYPES = ('like', 'dislike', 'helpful', 'report')
TARGET_TYPES = ('review', 'comment')
LIST_TYPES = ('favorites', 'want-to-read', 'currently-reading', 'read', 'custom')


def generate_id():
    """Application id kept alongside Mongo's ObjectId, e.g. ``1718000000000-3fa9c1``."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def utcnow():
    # Mongo stores naive UTC datetimes; keep new documents consistent with loaded ones
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() if value else None


def is_string_list(value):
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


class NotificationPreferences(EmbeddedDocument):
    email = BooleanField(default=True)
    push = BooleanField(default=True)
    new_reviews = BooleanField(default=True)
    likes = BooleanField(default=True)

    def to_dict(self):
        return {
            "email": self.email,
            "push": self.push,
            "newReviews": self.new_reviews,
            "likes": self.likes,
        }


class Preferences(EmbeddedDocument):
    theme = StringField(choices=THEMES, default='light')
    language = StringField(default='en')
    notifications = EmbeddedDocumentField(NotificationPreferences, default=NotificationPreferences)

    def to_dict(self):
        return {
            "theme": self.theme,
            "language": self.language,
            "notifications": self.notifications.to_dict(),
        }


class UserStats(EmbeddedDocument):
    total_reviews = IntField(default=0)
    total_likes = IntField(default=0)
    total_dislikes = IntField(default=0)
    books_read = IntField(default=0)
    books_favorited = IntField(default=0)

    def to_dict(self):
        return {
            "totalReviews": self.total_reviews,
            "totalLikes": self.total_likes,
            "totalDislikes": self.total_dislikes,
            "booksRead": self.books_read,
            "booksFavorited": self.books_favorited,
        }


class User(Document):
    public_id = StringField(required=True, unique=True, default=generate_id)
    email = StringField(required=True, unique=True)
    username = StringField(required=True, unique=True)
    display_name = StringField(required=True)
    password = StringField(required=True)
    avatar = StringField()
    bio = StringField()
    created_at = DateTimeField(default=utcnow)
    updated_at = DateTimeField(default=utcnow)
    is_active = BooleanField(default=True)
    email_verified = BooleanField(default=False)
    last_login = DateTimeField()
    preferences = EmbeddedDocumentField(Preferences, default=Preferences)
    stats = EmbeddedDocumentField(UserStats, default=UserStats)

    meta = {
        'collection': 'users',
        'indexes': ['-created_at'],
    }

    def to_summary(self):
        """The subset of the profile carried in auth responses."""
        return {
            "id": self.public_id,
            "email": self.email,
            "username": self.username,
            "displayName": self.display_name,
            "avatar": self.avatar,
        }

    def to_public_dict(self):
        """Profile fields any visitor may see."""
        return {
            "id": self.public_id,
            "username": self.username,
            "displayName": self.display_name,
            "avatar": self.avatar,
            "bio": self.bio,
            "createdAt": isoformat(self.created_at),
            "stats": self.stats.to_dict(),
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            "bio": self.bio,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "isActive": self.is_active,
            "emailVerified": self.email_verified,
            "lastLogin": isoformat(self.last_login),
            "preferences": self.preferences.to_dict(),
            "stats": self.stats.to_dict(),
        })
        return data


class ReviewStats(EmbeddedDocument):
    likes = IntField(default=0)
    dislikes = IntField(default=0)
    helpful = IntField(default=0)
    reports = IntField(default=0)

    def to_dict(self):
        return {
            "likes": self.likes,
            "dislikes": self.dislikes,
            "helpful": self.helpful,
            "reports": self.reports,
        }


class Review(Document):
    public_id = StringField(required=True, unique=True, default=generate_id)
    book_id = StringField(required=True)
    book_title = StringField(required=True)
    book_thumbnail = StringField()
    rating = IntField(required=True, min_value=1, max_value=5)
    content = StringField(required=True)
    created_at = DateTimeField(default=utcnow)
    updated_at = DateTimeField(default=utcnow)
    user_id = StringField(required=True)
    user_display_name = StringField(required=True)
    user_avatar = StringField()
    is_edited = BooleanField(default=False)
    is_public = BooleanField(default=True)
    stats = EmbeddedDocumentField(ReviewStats, default=ReviewStats)
    tags = ListField(StringField(), default=list)
    spoiler_warning = BooleanField(default=False)

    meta = {
        'collection': 'reviews',
        'indexes': [
            'book_id',
            'user_id',
            '-created_at',
            'rating',
            'is_public',
            '-stats.likes',
            # A user reviews a given book at most once
            {'fields': ['book_id', 'user_id'], 'unique': True},
        ],
    }

    def to_dict(self):
        return {
            "id": self.public_id,
            "bookId": self.book_id,
            "bookTitle": self.book_title,
            "bookThumbnail": self.book_thumbnail,
            "rating": self.rating,
            "content": self.content,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "userId": self.user_id,
            "userDisplayName": self.user_display_name,
            "userAvatar": self.user_avatar,
            "isEdited": self.is_edited,
            "isPublic": self.is_public,
            "stats": self.stats.to_dict(),
            "tags": list(self.tags),
            "spoilerWarning": self.spoiler_warning,
        }


class Vote(Document):
    public_id = StringField(required=True, unique=True, default=generate_id)
    user_id = StringField(required=True)
    target_type = StringField(required=True, choices=TARGET_TYPES)
    target_id = StringField(required=True)
    vote_type = StringField(required=True, choices=VOTE_TYPES)
    created_at = DateTimeField(default=utcnow)
    updated_at = DateTimeField(default=utcnow)
    # Un-voting flips this flag instead of deleting the document
    is_active = BooleanField(default=True)

    meta = {
        'collection': 'votes',
        'indexes': [
            'user_id',
            ('target_type', 'target_id'),
            'vote_type',
            '-created_at',
            {'fields': ['user_id', 'target_type', 'target_id'], 'unique': True},
        ],
    }

    def to_dict(self):
        return {
            "id": self.public_id,
            "userId": self.user_id,
            "targetType": self.target_type,
            "targetId": self.target_id,
            "voteType": self.vote_type,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "isActive": self.is_active,
        }


class BookListItem(EmbeddedDocument):
    book_id = StringField(required=True)
    book_title = StringField(required=True)
    book_thumbnail = StringField()
    book_authors = ListField(StringField(), default=list)
    categories = ListField(StringField(), default=list)
    added_at = DateTimeField(default=utcnow)
    notes = StringField()
    rating = IntField(min_value=1, max_value=5)
    read_date = StringField()
    progress = IntField(min_value=0, max_value=100)

    def to_dict(self):
        return {
            "bookId": self.book_id,
            "bookTitle": self.book_title,
            "bookThumbnail": self.book_thumbnail,
            "bookAuthors": list(self.book_authors),
            "categories": list(self.categories),
            "addedAt": isoformat(self.added_at),
            "notes": self.notes,
            "rating": self.rating,
            "readDate": self.read_date,
            "progress": self.progress,
        }


class BookList(Document):
    public_id = StringField(required=True, unique=True, default=generate_id)
    user_id = StringField(required=True)
    name = StringField(required=True)
    description = StringField()
    list_type = StringField(db_field='type', required=True, choices=LIST_TYPES)
    is_public = BooleanField(default=False)
    is_default = BooleanField(default=False)
    created_at = DateTimeField(default=utcnow)
    updated_at = DateTimeField(default=utcnow)
    book_count = IntField(default=0)
    books = EmbeddedDocumentListField(BookListItem, default=list)

    meta = {
        'collection': 'booklists',
        'indexes': [
            'user_id',
            'list_type',
            'is_public',
            '-created_at',
            '-updated_at',
            'books.book_id',
            # One reserved favorites list per user
            {
                'fields': ['user_id', 'list_type'],
                'unique': True,
                'partialFilterExpression': {'type': 'favorites'},
            },
        ],
    }

    def to_dict(self):
        return {
            "id": self.public_id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "type": self.list_type,
            "isPublic": self.is_public,
            "isDefault": self.is_default,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "bookCount": self.book_count,
            "books": [item.to_dict() for item in self.books],
        }


COLLECTIONS = {
    'users': User,
    'reviews': Review,
    'votes': Vote,
    'bookLists': BookList,
}
