"""Tests for database maintenance helpers and their CLI commands."""
from __future__ import annotations

import json

import pytest

import booklists
import database
import votes
from models import Review, User


def _legacy(**overrides):
    data = {
        "id": "legacy-1",
        "bookId": "vol-1",
        "bookTitle": "Dune",
        "rating": 4,
        "content": "Imported",
        "userId": "old-user",
        "userDisplayName": "Old Reader",
        "likes": 3,
        "createdAt": "2023-02-01T10:00:00.000Z",
    }
    data.update(overrides)
    return data


def test_database_stats(app, register):
    register("counted")
    booklists.get_or_create_favorites_list("someone")
    votes.create_or_update_vote({"userId": "u1", "targetType": "review", "targetId": "r1", "voteType": "like"})

    stats = database.get_database_stats()

    assert stats == {"users": 1, "reviews": 0, "votes": 1, "bookLists": 1, "total": 3}


def test_clear_test_data_only_in_development(app, register):
    register("keep")

    with pytest.raises(RuntimeError):
        database.clear_test_data("production")
    assert User.objects.count() == 1

    database.clear_test_data("development")
    assert User.objects.count() == 0


def test_connect_requires_host(app):
    app.config["MONGODB_SETTINGS"] = {"db": "x", "host": None}

    with pytest.raises(RuntimeError, match="MONGODB_URI"):
        database.connect_db(app)


def test_migrate_creates_placeholder_user(app):
    migrated = database.migrate_legacy_reviews({"reviews": [_legacy()]})

    assert [r.public_id for r in migrated] == ["legacy-1"]
    review = Review.objects.get(public_id="legacy-1")
    assert review.stats.likes == 3
    assert review.created_at.year == 2023
    placeholder = User.objects.get(public_id="old-user")
    assert placeholder.email == "temp-old-user@example.com"
    assert placeholder.username == "user-old-user"
    assert placeholder.display_name == "Old Reader"


def test_migrate_skips_bad_entries(app):
    data = {"reviews": [
        _legacy(id="good", userId=None, userDisplayName=None),
        _legacy(id="no-title", bookId="vol-2", bookTitle=None),
        _legacy(id="bad-rating", bookId="vol-3", rating=9),
    ]}

    migrated = database.migrate_legacy_reviews(data)

    assert [r.public_id for r in migrated] == ["good"]
    assert migrated[0].user_id == database.ANONYMOUS_USER_ID
    assert migrated[0].user_display_name == database.ANONYMOUS_DISPLAY_NAME
    assert database.migrate_legacy_reviews({}) == []


def test_cli_commands(app, tmp_path):
    runner = app.test_cli_runner()
    export = tmp_path / "reviews.json"
    export.write_text(json.dumps({"reviews": [_legacy()]}))

    assert "Database indexes created" in runner.invoke(args=["init-db"]).output
    assert "Migrated 1 reviews" in runner.invoke(args=["migrate-reviews", str(export)]).output
    assert "reviews: 1" in runner.invoke(args=["db-stats"]).output

    refused = runner.invoke(args=["clear-test-data", "--yes"])
    assert refused.exit_code != 0
    assert "only be cleared in development" in refused.output
