"""Password hashing, session tokens and the register/login actions.

Actions in this module keep a result-object style: they return
``{"success": bool, "message": str, ...}`` and never raise for expected
failures. The ``status`` key is the HTTP status the route should answer with.
"""
import logging
import re

from flask import jsonify
from flask_jwt_extended import create_access_token, current_user, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException, UserLookupError
from jwt.exceptions import PyJWTError
from mongoengine import NotUniqueError
from mongoengine.queryset.visitor import Q

from extensions import bcrypt, jwt
from models import User, isoformat, utcnow

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
USERNAME_RE = re.compile(r'^[a-zA-Z0-9_-]+$')

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


@jwt.user_lookup_loader
def _load_session_user(_jwt_header, jwt_data):
    return User.objects(public_id=jwt_data['sub'], is_active=True).first()


@jwt.user_lookup_error_loader
def _inactive_session_user(_jwt_header, _jwt_data):
    return jsonify({"error": "User not found or inactive"}), 401


@jwt.unauthorized_loader
def _missing_token(reason):
    return jsonify({"error": "Authentication required", "details": reason}), 401


@jwt.invalid_token_loader
def _invalid_token(reason):
    return jsonify({"error": "Invalid token", "details": reason}), 401


@jwt.expired_token_loader
def _expired_token(_jwt_header, _jwt_data):
    return jsonify({"error": "Session expired"}), 401


def hash_password(password):
    return bcrypt.generate_password_hash(password).decode('utf-8')


def verify_password(password, hashed_password):
    if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.check_password_hash(hashed_password, password)


def generate_token(user):
    return create_access_token(
        identity=user.public_id,
        additional_claims={
            "email": user.email,
            "username": user.username,
            "displayName": user.display_name,
        },
    )


def is_valid_email(email):
    return bool(email) and EMAIL_RE.match(email) is not None


def is_valid_password(password):
    password = password or ''
    if len(password) < 8:
        return False, 'Password must be at least 8 characters long'
    if len(password.encode('utf-8')) > MAX_PASSWORD_BYTES:
        return False, 'Password cannot be longer than 72 bytes'
    if not re.search(r'[a-z]', password):
        return False, 'Password must contain at least one lowercase letter'
    if not re.search(r'[A-Z]', password):
        return False, 'Password must contain at least one uppercase letter'
    if not re.search(r'\d', password):
        return False, 'Password must contain at least one number'
    return True, 'Valid password'


def is_valid_username(username):
    username = username or ''
    if len(username) < 3:
        return False, 'Username must be at least 3 characters long'
    if len(username) > 20:
        return False, 'Username cannot be longer than 20 characters'
    if not USERNAME_RE.match(username):
        return False, 'Username may only contain letters, numbers, hyphens and underscores'
    return True, 'Valid username'


def is_valid_display_name(display_name):
    display_name = display_name or ''
    if len(display_name) < 2:
        return False, 'Display name must be at least 2 characters long'
    if len(display_name) > 50:
        return False, 'Display name cannot be longer than 50 characters'
    return True, 'Valid display name'


def _text(value):
    return value.strip() if isinstance(value, str) else ''


def normalize_email(email):
    return _text(email).lower()


def _failure(message, status=400):
    return {"success": False, "message": message, "status": status}


def _authenticated(user, message, status=200):
    return {
        "success": True,
        "message": message,
        "user": user.to_summary(),
        "token": generate_token(user),
        "status": status,
    }


def register_user(data):
    try:
        email = normalize_email(data.get('email'))
        password = data.get('password')
        if not isinstance(password, str):
            password = ''
        username = _text(data.get('username'))
        display_name = _text(data.get('displayName'))

        if not is_valid_email(email):
            return _failure('Invalid email')

        for valid, message in (
            is_valid_password(password),
            is_valid_username(username),
            is_valid_display_name(display_name),
        ):
            if not valid:
                return _failure(message)

        if User.objects(Q(email=email) | Q(username=username)).first():
            return _failure('Email or username is already in use', 409)

        user = User(
            email=email,
            username=username,
            display_name=display_name,
            password=hash_password(password),
            avatar=data.get('avatar'),
            bio=data.get('bio'),
        )
        try:
            user.save()
        except NotUniqueError:
            return _failure('Email or username is already in use', 409)

        logger.info("Registered user %s", user.public_id)
        return _authenticated(user, 'User registered successfully', 201)
    except Exception:
        logger.exception("Error registering user")
        return _failure('Internal server error', 500)


def login_user(email, password):
    try:
        email = normalize_email(email)
        if not email or not isinstance(password, str) or not password:
            return _failure('Email and password are required')

        user = User.objects(email=email).first()
        if user is None:
            return _failure('Invalid credentials', 401)

        if not user.is_active:
            return _failure('Account deactivated', 403)

        if not verify_password(password, user.password):
            return _failure('Invalid credentials', 401)

        now = utcnow()
        user.update(set__last_login=now, set__updated_at=now)
        user.reload()

        return _authenticated(user, 'Logged in successfully')
    except Exception:
        logger.exception("Error logging in user")
        return _failure('Internal server error', 500)


def get_current_user():
    """Resolve the session user from the auth cookie or bearer header."""
    try:
        try:
            verify_jwt_in_request(optional=True)
        except UserLookupError:
            return _failure('User not found or inactive', 401)
        except (JWTExtendedException, PyJWTError):
            return _failure('Invalid token', 401)

        if get_jwt_identity() is None:
            return _failure('No active session', 401)

        user = current_user
        data = user.to_summary()
        data.update({"bio": user.bio, "createdAt": isoformat(user.created_at)})
        return {"success": True, "user": data, "status": 200}
    except Exception:
        logger.exception("Error getting current user")
        return _failure('Could not get the current user', 500)


def is_authenticated():
    return get_current_user()["success"]
