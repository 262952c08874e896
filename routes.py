import logging

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, get_jwt_identity, jwt_required, set_access_cookies, unset_jwt_cookies

import booklists
import books
import chat
import reviews
import users
import votes
from auth import get_current_user, login_user, register_user
from errors import ActionError, InvalidInputError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

# Create a blueprint for routes
routes = Blueprint('routes', __name__)

MAX_RECOMMENDATIONS = 40


def _json():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError('Request body must be a JSON object')
    return data


def _page_args(default_limit=20):
    return request.args.get('page', 1), request.args.get('limit', default_limit)


def _auth_response(result):
    status = result.pop('status', 200)
    response = jsonify(result)
    if result.get('token'):
        # The cookie expires together with the token it carries
        set_access_cookies(response, result['token'], max_age=current_app.config['JWT_ACCESS_TOKEN_EXPIRES'])
    return response, status


# ---------------------------------------------------------------- auth

@routes.route('/auth/register', methods=['POST'])
def register():
    return _auth_response(register_user(_json()))


@routes.route('/auth/login', methods=['POST'])
def login():
    data = _json()
    return _auth_response(login_user(data.get('email'), data.get('password')))


@routes.route('/auth/logout', methods=['POST'])
def logout():
    response = jsonify({"success": True, "message": "Logged out successfully"})
    unset_jwt_cookies(response)
    return response, 200


@routes.route('/auth/me', methods=['GET'])
def me():
    result = get_current_user()
    status = result.pop('status', 200)
    return jsonify(result), status


# ---------------------------------------------------------------- users

@routes.route('/users', methods=['GET'])
@jwt_required()
def list_users():
    page, limit = _page_args()
    result = users.get_all_users(page, limit)
    return jsonify({
        "users": [user.to_public_dict() for user in result["users"]],
        "total": result["total"],
        "pagination": result["pagination"],
    }), 200


@routes.route('/users/me', methods=['PATCH'])
@jwt_required()
def update_me():
    user = users.update_user(current_user.public_id, _json())
    return jsonify(user.to_dict()), 200


@routes.route('/users/me', methods=['DELETE'])
@jwt_required()
def delete_me():
    users.delete_user(current_user.public_id)
    response = jsonify({"success": True, "message": "Account deactivated"})
    unset_jwt_cookies(response)
    return response, 200


@routes.route('/users/by-username/<string:username>', methods=['GET'])
def get_user_by_username(username):
    user = users.get_user_by_username(username)
    if user is None or not user.is_active:
        raise NotFoundError('User not found')
    return jsonify(user.to_public_dict()), 200


@routes.route('/users/<string:user_id>', methods=['GET'])
@jwt_required(optional=True)
def get_user(user_id):
    user = users.get_user_by_id(user_id)
    if user is None or not user.is_active:
        raise NotFoundError('User not found')
    if get_jwt_identity() == user_id:
        return jsonify(user.to_dict()), 200
    return jsonify(user.to_public_dict()), 200


@routes.route('/users/<string:user_id>/stats', methods=['GET'])
def get_user_stats(user_id):
    stats = users.refresh_user_stats(user_id)
    return jsonify(stats.to_dict()), 200


# ---------------------------------------------------------------- reviews

def _owned_review(review_id):
    review = reviews.get_review_by_id(review_id)
    if review is None:
        raise NotFoundError('Review not found')
    if review.user_id != current_user.public_id:
        raise PermissionDeniedError('You can only change your own reviews')
    return review


@routes.route('/reviews', methods=['GET'])
@jwt_required(optional=True)
def list_reviews():
    viewer = get_jwt_identity()
    filter_keys = ('bookId', 'userId', 'rating', 'tag', 'dateFrom', 'dateTo')
    if not any(key in request.args for key in filter_keys):
        visible = [r.to_dict() for r in reviews.get_all_reviews() if r.is_public or r.user_id == viewer]
        return jsonify(visible), 200

    filters = {
        'bookId': request.args.get('bookId'),
        'userId': request.args.get('userId'),
        'rating': request.args.get('rating', type=int),
        'tags': request.args.getlist('tag'),
        'dateFrom': request.args.get('dateFrom'),
        'dateTo': request.args.get('dateTo'),
    }
    # Private reviews are only listed for their author
    if not viewer or filters['userId'] != viewer:
        filters['isPublic'] = True

    page, limit = _page_args()
    result = reviews.find_reviews(filters, page, limit)
    result["data"] = [review.to_dict() for review in result["data"]]
    return jsonify(result), 200


@routes.route('/reviews', methods=['POST'])
@jwt_required()
def create_review():
    data = _json()
    data.update({
        'userId': current_user.public_id,
        'userDisplayName': current_user.display_name,
        'userAvatar': current_user.avatar,
    })
    review = reviews.create_review(data)
    return jsonify(review.to_dict()), 201


@routes.route('/reviews/<string:review_id>', methods=['PATCH'])
@jwt_required()
def update_review(review_id):
    _owned_review(review_id)
    review = reviews.update_review(review_id, _json())
    return jsonify(review.to_dict()), 200


@routes.route('/reviews/<string:review_id>', methods=['DELETE'])
@jwt_required()
def delete_review(review_id):
    _owned_review(review_id)
    deleted = reviews.delete_review(review_id)
    return jsonify({"success": deleted}), 200


@routes.route('/reviews/<string:review_id>/like', methods=['POST'])
def like_review(review_id):
    review = reviews.increment_likes(review_id)
    return jsonify(review.to_dict()), 200


@routes.route('/reviews/<string:review_id>/dislike', methods=['POST'])
def dislike_review(review_id):
    review = reviews.increment_dislikes(review_id)
    return jsonify(review.to_dict()), 200


# ---------------------------------------------------------------- votes

@routes.route('/votes', methods=['PUT'])
@jwt_required()
def cast_vote():
    data = _json()
    vote = votes.create_or_update_vote({
        'userId': current_user.public_id,
        'targetType': data.get('targetType'),
        'targetId': data.get('targetId'),
        'voteType': data.get('voteType'),
    })
    return jsonify(vote.to_dict()), 200


@routes.route('/votes/<string:target_type>/<string:target_id>', methods=['DELETE'])
@jwt_required()
def remove_vote(target_type, target_id):
    removed = votes.remove_vote(current_user.public_id, target_type, target_id)
    if not removed:
        raise NotFoundError('Vote not found')
    return jsonify({"success": True}), 200


@routes.route('/votes/<string:target_type>/<string:target_id>/stats', methods=['GET'])
@jwt_required(optional=True)
def vote_stats(target_type, target_id):
    stats = votes.get_vote_stats(target_type, target_id, get_jwt_identity())
    return jsonify(stats), 200


@routes.route('/votes/me', methods=['GET'])
@jwt_required()
def my_votes():
    filters = {
        'targetType': request.args.get('targetType'),
        'targetId': request.args.get('targetId'),
        'voteType': request.args.get('voteType'),
    }
    user_votes = votes.get_user_votes(current_user.public_id, filters)
    return jsonify([vote.to_dict() for vote in user_votes]), 200


@routes.route('/votes', methods=['GET'])
def list_votes():
    filters = {
        'userId': request.args.get('userId'),
        'targetType': request.args.get('targetType'),
        'targetId': request.args.get('targetId'),
        'voteType': request.args.get('voteType'),
    }
    page, limit = _page_args(default_limit=50)
    result = votes.get_all_votes(filters, page, limit)
    return jsonify({
        "votes": [vote.to_dict() for vote in result["votes"]],
        "total": result["total"],
        "pagination": result["pagination"],
    }), 200


# ---------------------------------------------------------------- book lists

def _owned_list(list_id):
    book_list = booklists.get_book_list_by_id(list_id)
    if book_list is None:
        raise NotFoundError('List not found')
    if book_list.user_id != current_user.public_id:
        raise PermissionDeniedError('You can only change your own lists')
    return book_list


@routes.route('/lists', methods=['POST'])
@jwt_required()
def create_list():
    data = _json()
    data['userId'] = current_user.public_id
    book_list = booklists.create_book_list(data)
    return jsonify(book_list.to_dict()), 201


@routes.route('/lists/me', methods=['GET'])
@jwt_required()
def my_lists():
    lists = booklists.get_user_book_lists(current_user.public_id, request.args.get('type'))
    return jsonify([book_list.to_dict() for book_list in lists]), 200


@routes.route('/lists/public', methods=['GET'])
def public_lists():
    filters = {
        'userId': request.args.get('userId'),
        'type': request.args.get('type'),
        'bookId': request.args.get('bookId'),
    }
    page, limit = _page_args()
    result = booklists.get_public_book_lists(filters, page, limit)
    return jsonify({
        "lists": [book_list.to_dict() for book_list in result["lists"]],
        "total": result["total"],
        "pagination": result["pagination"],
    }), 200


@routes.route('/lists/contains/<string:book_id>', methods=['GET'])
@jwt_required()
def list_contains(book_id):
    result = booklists.is_book_in_list(current_user.public_id, book_id, request.args.get('type'))
    return jsonify(result), 200


@routes.route('/lists/<string:list_id>', methods=['GET'])
@jwt_required(optional=True)
def get_list(list_id):
    book_list = booklists.get_book_list_by_id(list_id)
    # Private lists look missing to everyone but their owner
    if book_list is None or (not book_list.is_public and book_list.user_id != get_jwt_identity()):
        raise NotFoundError('List not found')
    return jsonify(book_list.to_dict()), 200


@routes.route('/lists/<string:list_id>', methods=['PATCH'])
@jwt_required()
def update_list(list_id):
    _owned_list(list_id)
    book_list = booklists.update_book_list(list_id, _json())
    return jsonify(book_list.to_dict()), 200


@routes.route('/lists/<string:list_id>', methods=['DELETE'])
@jwt_required()
def delete_list(list_id):
    _owned_list(list_id)
    deleted = booklists.delete_book_list(list_id)
    return jsonify({"success": deleted}), 200


@routes.route('/lists/<string:list_id>/books', methods=['POST'])
@jwt_required()
def add_list_book(list_id):
    _owned_list(list_id)
    book_list = booklists.add_book_to_list(list_id, _json())
    return jsonify(book_list.to_dict()), 201


@routes.route('/lists/<string:list_id>/books/<string:book_id>', methods=['PATCH'])
@jwt_required()
def update_list_book(list_id, book_id):
    _owned_list(list_id)
    book_list = booklists.update_book_in_list(list_id, book_id, _json())
    return jsonify(book_list.to_dict()), 200


@routes.route('/lists/<string:list_id>/books/<string:book_id>', methods=['DELETE'])
@jwt_required()
def remove_list_book(list_id, book_id):
    _owned_list(list_id)
    book_list = booklists.remove_book_from_list(list_id, book_id)
    return jsonify(book_list.to_dict()), 200


# ---------------------------------------------------------------- favorites

@routes.route('/favorites', methods=['GET'])
@jwt_required()
def get_favorites():
    favorites = booklists.get_or_create_favorites_list(current_user.public_id)
    return jsonify(favorites.to_dict()), 200


@routes.route('/favorites', methods=['POST'])
@jwt_required()
def add_favorite():
    result = booklists.add_to_favorites(current_user.public_id, _json())
    return jsonify(result), 201 if result["success"] else 409


@routes.route('/favorites/categories', methods=['GET'])
@jwt_required()
def favorite_categories():
    return jsonify(booklists.get_favorite_categories(current_user.public_id)), 200


@routes.route('/favorites/<string:book_id>', methods=['GET'])
@jwt_required()
def is_favorite(book_id):
    return jsonify({"isFavorite": booklists.is_book_in_favorites(current_user.public_id, book_id)}), 200


@routes.route('/favorites/<string:book_id>', methods=['DELETE'])
@jwt_required()
def remove_favorite(book_id):
    result = booklists.remove_from_favorites(current_user.public_id, book_id)
    return jsonify(result), 200 if result["success"] else 404


# ---------------------------------------------------------------- books

@routes.route('/books/search', methods=['GET'])
def search_books():
    return jsonify(books.search_books(request.args.get('q', ''))), 200


@routes.route('/books/recommended', methods=['GET'])
@jwt_required(optional=True)
def recommended_books():
    limit = min(max(request.args.get('limit', 8, type=int), 1), MAX_RECOMMENDATIONS)
    categories = []
    user_id = get_jwt_identity()
    if user_id:
        categories = booklists.get_favorite_categories(user_id)
    return jsonify(books.get_recommended_books(categories, limit)), 200


@routes.route('/books/<string:book_id>', methods=['GET'])
def get_book(book_id):
    book = books.get_book_by_id(book_id)
    if book is None:
        raise NotFoundError('Book not found')
    return jsonify(book), 200


@routes.route('/books/<string:book_id>/review', methods=['GET'])
def get_book_review(book_id):
    review = reviews.get_review_by_book_id(book_id, request.args.get('userId'))
    return jsonify({"review": review.to_dict() if review else None}), 200


# ---------------------------------------------------------------- chat

@routes.route('/api/chat', methods=['POST'])
def chat_message():
    data = _json()
    try:
        reply = chat.chat_reply(data.get('messages'), data.get('userPreferences'))
    except chat.ChatUnavailableError as e:
        return jsonify({"message": e.message}), e.status_code
    except ActionError:
        raise
    except Exception as e:
        logger.exception("Chat request failed")
        return jsonify({"error": "Internal server error", "details": str(e)}), 500
    return jsonify({"message": reply}), 200
