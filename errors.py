"""Error types shared by the actions and the JSON error handler."""
import logging
from functools import wraps

from flask import jsonify
from mongoengine import ValidationError

logger = logging.getLogger(__name__)


class ActionError(Exception):
    """An action failed; ``message`` is safe to show to the client."""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInputError(ActionError):
    status_code = 400


class PermissionDeniedError(ActionError):
    status_code = 403


class NotFoundError(ActionError):
    status_code = 404


class ConflictError(ActionError):
    status_code = 409


def action(failure_message):
    """Wrap an action so unexpected failures surface as ``ActionError``.

    Errors already expressed as ``ActionError`` pass through untouched,
    document validation failures become ``InvalidInputError`` and
    anything else is logged with its traceback and replaced by
    ``failure_message``.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ActionError:
                raise
            except ValidationError as exc:
                logger.info("Rejected invalid data in %s: %s", func.__name__, exc)
                raise InvalidInputError(failure_message) from exc
            except Exception as exc:
                logger.exception("Action %s failed", func.__name__)
                raise ActionError(failure_message) from exc
        return wrapper
    return decorator


def register_error_handlers(app):
    @app.errorhandler(ActionError)
    def handle_action_error(error):
        return jsonify({"error": error.message}), error.status_code
