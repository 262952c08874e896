import logging

from mongoengine import NotUniqueError

from errors import InvalidInputError, action
from models import TARGET_TYPES, VOTE_TYPES, Vote, utcnow
from pagination import paginate

logger = logging.getLogger(__name__)

# vote type -> key in the stats payload
STAT_KEYS = {
    'like': 'likes',
    'dislike': 'dislikes',
    'helpful': 'helpful',
    'report': 'reports',
}


def _validate_target_type(target_type):
    if target_type not in TARGET_TYPES:
        raise InvalidInputError('targetType must be one of: %s' % ', '.join(TARGET_TYPES))


def _validate_vote_type(vote_type):
    if vote_type not in VOTE_TYPES:
        raise InvalidInputError('voteType must be one of: %s' % ', '.join(VOTE_TYPES))


def _filter_query(filters, query):
    filters = filters or {}
    if filters.get('userId'):
        query['user_id'] = filters['userId']
    if filters.get('targetType'):
        query['target_type'] = filters['targetType']
    if filters.get('targetId'):
        query['target_id'] = filters['targetId']
    if filters.get('voteType'):
        query['vote_type'] = filters['voteType']
    return query


def _upsert_vote(data):
    target = Vote.objects(
        user_id=data['userId'],
        target_type=data['targetType'],
        target_id=data['targetId'],
    )
    vote = target.modify(
        new=True,
        set__vote_type=data['voteType'],
        set__updated_at=utcnow(),
        set__is_active=True,
    )
    if vote is not None:
        return vote

    vote = Vote(
        user_id=data['userId'],
        target_type=data['targetType'],
        target_id=data['targetId'],
        vote_type=data['voteType'],
    )
    vote.save()
    return vote


@action('Could not process the vote')
def create_or_update_vote(data):
    """Record a user's vote on a target, replacing any earlier vote."""
    if not data.get('userId') or not data.get('targetId'):
        raise InvalidInputError('userId and targetId are required')
    _validate_target_type(data.get('targetType'))
    _validate_vote_type(data.get('voteType'))

    try:
        return _upsert_vote(data)
    except NotUniqueError:
        # Lost a race with a concurrent first vote; the document exists now
        return _upsert_vote(data)


@action('Could not remove the vote')
def remove_vote(user_id, target_type, target_id):
    updated = Vote.objects(
        user_id=user_id,
        target_type=target_type,
        target_id=target_id,
    ).update_one(set__is_active=False, set__updated_at=utcnow())
    return bool(updated)


@action('Could not get the vote stats')
def get_vote_stats(target_type, target_id, user_id=None):
    _validate_target_type(target_type)
    counts = Vote.objects(target_type=target_type, target_id=target_id, is_active=True).aggregate([
        {'$group': {'_id': '$vote_type', 'count': {'$sum': 1}}},
    ])

    stats = {key: 0 for key in STAT_KEYS.values()}
    for row in counts:
        key = STAT_KEYS.get(row['_id'])
        if key:
            stats[key] = row['count']

    if user_id:
        vote = Vote.objects(
            user_id=user_id,
            target_type=target_type,
            target_id=target_id,
            is_active=True,
        ).first()
        if vote is not None:
            stats['userVote'] = vote.vote_type

    return stats


@action("Could not get the user's votes")
def get_user_votes(user_id, filters=None):
    query = _filter_query(filters, {})
    query.update(user_id=user_id, is_active=True)
    return list(Vote.objects(**query).order_by('-created_at'))


@action('Could not get the votes')
def get_all_votes(filters=None, page=1, limit=50):
    query = _filter_query(filters, {'is_active': True})
    queryset = Vote.objects(**query).order_by('-created_at')
    result = paginate(queryset, page, limit)
    return {"votes": result["data"], "total": result["pagination"]["total"], "pagination": result["pagination"]}
