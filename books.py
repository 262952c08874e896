"""Google Books catalog client."""
import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = 'Unknown title'
SEARCH_RESULTS = 20


def map_volume_to_simple(volume):
    info = volume.get('volumeInfo') or {}
    image_links = info.get('imageLinks') or {}
    return {
        "id": volume.get('id'),
        "title": info.get('title') or UNKNOWN_TITLE,
        "authors": info.get('authors') or [],
        "thumbnail": image_links.get('thumbnail') or image_links.get('smallThumbnail'),
    }


def map_volume_to_detailed(volume):
    book = map_volume_to_simple(volume)
    info = volume.get('volumeInfo') or {}
    book.update({
        "description": info.get('description'),
        "publishedDate": info.get('publishedDate'),
        "pageCount": info.get('pageCount'),
        "categories": info.get('categories') or [],
        "publisher": info.get('publisher'),
        "language": info.get('language'),
    })
    return book


def _get(path='', params=None):
    config = current_app.config
    params = dict(params or {})
    if config.get('GOOGLE_BOOKS_API_KEY'):
        params['key'] = config['GOOGLE_BOOKS_API_KEY']
    url = config['GOOGLE_BOOKS_API_URL'].rstrip('/')
    if path:
        url = f"{url}/{requests.utils.quote(path, safe='')}"
    return requests.get(url, params=params, timeout=config['BOOKS_REQUEST_TIMEOUT'])


def _volumes(params):
    try:
        response = _get(params=params)
        if not response.ok:
            logger.warning("Catalog returned %s for %s", response.status_code, params.get('q'))
            return []
        items = response.json().get('items')
    except requests.RequestException:
        logger.exception("Catalog request failed: %s", params.get('q'))
        return []
    if not isinstance(items, list):
        return []
    return [map_volume_to_simple(item) for item in items]


def search_books(query):
    if not query or not query.strip():
        return []
    return _volumes({'q': query.strip(), 'maxResults': SEARCH_RESULTS})


def get_book_by_id(book_id):
    if not book_id:
        return None
    try:
        response = _get(book_id)
        if not response.ok:
            return None
        volume = response.json()
    except requests.RequestException:
        logger.exception("Catalog lookup failed for %s", book_id)
        return None
    return map_volume_to_detailed(volume)


def get_recommended_books(categories=(), limit=8):
    """Relevance-ordered volumes for the given subjects, or general fiction."""
    try:
        if categories:
            query = ' OR '.join(f'subject:{category}' for category in categories)
        else:
            query = 'subject:fiction'
        return _volumes({'q': query, 'maxResults': limit, 'orderBy': 'relevance'})
    except Exception:
        logger.exception("Error fetching recommended books")
        return []
