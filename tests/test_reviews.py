"""Tests for review actions and routes."""
from __future__ import annotations

from datetime import datetime

import pytest

import reviews
from errors import ConflictError, InvalidInputError, NotFoundError
from models import Review


def _review_data(**overrides):
    data = {
        "bookId": "vol-1",
        "bookTitle": "Dune",
        "rating": 5,
        "content": "A desert epic.",
        "userId": "user-1",
        "userDisplayName": "Reader One",
    }
    data.update(overrides)
    return data


def test_create_review_defaults(app):
    review = reviews.create_review(_review_data(tags=["sci-fi"]))

    assert review.public_id
    assert review.is_edited is False
    assert review.is_public is True
    assert review.spoiler_warning is False
    assert review.tags == ["sci-fi"]
    assert review.stats.to_dict() == {"likes": 0, "dislikes": 0, "helpful": 0, "reports": 0}


@pytest.mark.parametrize("rating", [0, 6, "5", 4.5, True, None])
def test_create_review_rejects_bad_rating(app, rating):
    with pytest.raises(InvalidInputError):
        reviews.create_review(_review_data(rating=rating))


def test_create_review_requires_content(app):
    with pytest.raises(InvalidInputError, match="content"):
        reviews.create_review(_review_data(content="   "))


def test_one_review_per_user_and_book(app):
    reviews.create_review(_review_data())

    with pytest.raises(ConflictError):
        reviews.create_review(_review_data(content="Again"))

    # Another reader can still review the same book
    reviews.create_review(_review_data(userId="user-2"))
    assert Review.objects(book_id="vol-1").count() == 2


def test_increment_likes_adds_exactly_one(app):
    review = reviews.create_review(_review_data())

    first = reviews.increment_likes(review.public_id)
    second = reviews.increment_likes(review.public_id)

    assert first.stats.likes == 1
    assert second.stats.likes == 2
    assert second.stats.dislikes == 0


def test_increment_dislikes(app):
    review = reviews.create_review(_review_data())

    updated = reviews.increment_dislikes(review.public_id)

    assert updated.stats.dislikes == 1
    assert updated.stats.likes == 0


def test_increment_unknown_review(app):
    with pytest.raises(NotFoundError):
        reviews.increment_likes("missing")


def test_update_review_marks_edited(app):
    review = reviews.create_review(_review_data())

    updated = reviews.update_review(review.public_id, {"rating": 3, "content": "Changed my mind", "isPublic": False})

    assert updated.rating == 3
    assert updated.content == "Changed my mind"
    assert updated.is_public is False
    assert updated.is_edited is True


def test_update_review_validates_and_404s(app):
    review = reviews.create_review(_review_data())

    with pytest.raises(InvalidInputError):
        reviews.update_review(review.public_id, {"rating": 9})
    with pytest.raises(NotFoundError):
        reviews.update_review("missing", {"content": "x"})


def test_delete_review(app):
    review = reviews.create_review(_review_data())

    assert reviews.delete_review(review.public_id) is True
    assert reviews.delete_review(review.public_id) is False


def test_get_review_by_book_id_for_user(app):
    reviews.create_review(_review_data(userId="user-1", content="first"))
    reviews.create_review(_review_data(userId="user-2", content="second"))

    assert reviews.get_review_by_book_id("vol-1", "user-2").content == "second"
    assert reviews.get_review_by_book_id("vol-1") is not None
    assert reviews.get_review_by_book_id("vol-404") is None


def test_find_reviews_filters(app):
    reviews.create_review(_review_data(bookId="a", rating=5, tags=["classic", "sci-fi"]))
    reviews.create_review(_review_data(bookId="b", rating=2, tags=["sci-fi"]))
    reviews.create_review(_review_data(bookId="c", rating=5, userId="user-2"))

    by_rating = reviews.find_reviews({"rating": 5})
    by_tags = reviews.find_reviews({"tags": ["classic", "sci-fi"]})
    by_user = reviews.find_reviews({"userId": "user-2"})

    assert {r.book_id for r in by_rating["data"]} == {"a", "c"}
    assert [r.book_id for r in by_tags["data"]] == ["a"]
    assert by_user["pagination"]["total"] == 1


def test_find_reviews_by_date_range(app):
    old = reviews.create_review(_review_data(bookId="old"))
    Review.objects(public_id=old.public_id).update_one(set__created_at=datetime(2020, 1, 1))
    reviews.create_review(_review_data(bookId="new"))

    result = reviews.find_reviews({"dateFrom": "2021-01-01"})

    assert [r.book_id for r in result["data"]] == ["new"]
    with pytest.raises(InvalidInputError):
        reviews.find_reviews({"dateTo": "not-a-date"})


def test_review_routes_enforce_ownership(register):
    author, _ = register("author")
    other, _ = register("other")

    created = author.post("/reviews", json={"bookId": "vol-9", "bookTitle": "Emma", "rating": 4, "content": "Witty."})
    assert created.status_code == 201
    body = created.get_json()
    assert body["userDisplayName"] == "Avid Reader"

    forbidden = other.patch(f"/reviews/{body['id']}", json={"content": "Hijacked"})
    assert forbidden.status_code == 403

    edited = author.patch(f"/reviews/{body['id']}", json={"content": "Very witty."})
    assert edited.status_code == 200
    assert edited.get_json()["isEdited"] is True

    duplicate = author.post("/reviews", json={"bookId": "vol-9", "bookTitle": "Emma", "rating": 1, "content": "Again"})
    assert duplicate.status_code == 409
    assert duplicate.get_json() == {"error": "You have already reviewed this book"}


def test_private_reviews_hidden_from_others(register, client):
    author, user = register("author")
    created = author.post("/reviews", json={"bookId": "vol-7", "bookTitle": "Ulysses", "rating": 3, "content": "Long."})
    review_id = created.get_json()["id"]
    author.patch(f"/reviews/{review_id}", json={"isPublic": False})

    assert client.get("/reviews").get_json() == []
    assert len(author.get("/reviews").get_json()) == 1
    assert client.get(f"/reviews?userId={user['id']}").get_json()["data"] == []
    assert len(author.get(f"/reviews?userId={user['id']}").get_json()["data"]) == 1


def test_like_route(client, app):
    review = reviews.create_review(_review_data())

    resp = client.post(f"/reviews/{review.public_id}/like")

    assert resp.status_code == 200
    assert resp.get_json()["stats"]["likes"] == 1
    assert client.post("/reviews/missing/dislike").status_code == 404


def test_book_review_lookup_route(client, app):
    reviews.create_review(_review_data())

    found = client.get("/books/vol-1/review?userId=user-1").get_json()
    missing = client.get("/books/vol-1/review?userId=user-9").get_json()

    assert found["review"]["content"] == "A desert epic."
    assert missing == {"review": None}


def test_tags_must_be_a_list_of_strings(app):
    with pytest.raises(InvalidInputError):
        reviews.create_review(_review_data(tags="sci-fi"))
    review = reviews.create_review(_review_data())
    with pytest.raises(InvalidInputError):
        reviews.update_review(review.public_id, {"tags": ["ok", 3]})


def test_review_route_rejects_bad_tags(register):
    author, _ = register("author")

    resp = author.post("/reviews", json={"bookId": "vol-3", "bookTitle": "Emma", "rating": 4, "content": "x", "tags": "sci-fi"})

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Tags must be a list of strings"}
