from datetime import datetime, timedelta

import pytest

from errors import ConflictError, NotFoundError, ValidationError
from models import User, Mood, Goal, ChatMessage


def test_create_stamps_id_and_created_at(make_user):
    user = make_user()
    assert user.id is not None
    assert user.created_at is not None
    assert user.xp == 0
    assert user.level == 1


def test_duplicate_username_is_a_conflict(make_user):
    make_user("alice")
    with pytest.raises(ConflictError, match="Username already exists"):
        make_user("alice", email="other@example.com")


def test_duplicate_email_is_a_conflict(make_user):
    make_user("alice", email="same@example.com")
    with pytest.raises(ConflictError, match="Email already exists"):
        make_user("alicia", email="same@example.com")


def test_owned_record_needs_an_existing_user(store):
    with pytest.raises(NotFoundError):
        store.create(Mood, user_id=999, mood="calm", intensity=3)


def test_get_by_id_missing_raises(store):
    with pytest.raises(NotFoundError):
        store.get_by_id(Goal, 12345)


def test_list_is_newest_first_and_per_user(store, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    base = datetime(2026, 3, 1, 9, 0)
    for i in range(3):
        store.create(Mood, user_id=alice.id, mood="calm", intensity=i + 1, created_at=base + timedelta(hours=i))
    store.create(Mood, user_id=bob.id, mood="sad", intensity=2, created_at=base)

    moods = store.list_by_user_id(Mood, alice.id)
    assert [m.intensity for m in moods] == [3, 2, 1]
    assert all(m.user_id == alice.id for m in moods)

    ascending = store.list_by_user_id(Mood, alice.id, ascending=True)
    assert [m.intensity for m in ascending] == [1, 2, 3]


def test_same_timestamp_is_ordered_by_id(store, make_user):
    user = make_user()
    moment = datetime(2026, 3, 1, 9, 0)
    first = store.create(ChatMessage, user_id=user.id, content="hi", is_user_message=True, created_at=moment)
    second = store.create(ChatMessage, user_id=user.id, content="hello", is_user_message=False, created_at=moment)

    history = store.list_by_user_id(ChatMessage, user.id, ascending=True)
    assert [m.id for m in history] == [first.id, second.id]


def test_limit_keeps_the_most_recent(store, make_user):
    user = make_user()
    base = datetime(2026, 3, 1, 9, 0)
    for i in range(5):
        store.create(ChatMessage, user_id=user.id, content=str(i), created_at=base + timedelta(minutes=i))

    last_two = store.list_by_user_id(ChatMessage, user.id, ascending=True, limit=2)
    assert [m.content for m in last_two] == ["3", "4"]


def test_filters_and_since(store, make_user):
    user = make_user()
    now = datetime(2026, 3, 10, 12, 0)
    store.create(Goal, user_id=user.id, title="old", completed=True, created_at=now - timedelta(days=10))
    store.create(Goal, user_id=user.id, title="new", completed=False, created_at=now - timedelta(days=1))

    assert [g.title for g in store.list_by_user_id(Goal, user.id, completed=True)] == ["old"]
    assert [g.title for g in store.list_by_user_id(Goal, user.id, since=now - timedelta(days=7))] == ["new"]
    assert store.count_by_user_id(Goal, user.id) == 2


def test_latest_by_user_id(store, make_user):
    user = make_user()
    assert store.latest_by_user_id(Mood, user.id) is None
    store.create(Mood, user_id=user.id, mood="sad", intensity=2, created_at=datetime(2026, 3, 1))
    store.create(Mood, user_id=user.id, mood="happy", intensity=5, created_at=datetime(2026, 3, 2))
    assert store.latest_by_user_id(Mood, user.id).mood == "happy"


def test_update_merges_fields(store, make_user):
    user = make_user()
    goal = store.create(Goal, user_id=user.id, title="Walk daily", description="30 minutes")
    updated = store.update(Goal, goal.id, progress=40)
    assert updated.progress == 40
    assert updated.title == "Walk daily"
    assert updated.description == "30 minutes"

    with pytest.raises(NotFoundError):
        store.update(Goal, 999, progress=10)


def test_delete_is_idempotent(store, make_user):
    user = make_user()
    goal = store.create(Goal, user_id=user.id, title="Sleep earlier")
    assert store.delete(Goal, goal.id) is True
    assert store.delete(Goal, goal.id) is False
    with pytest.raises(NotFoundError):
        store.get_by_id(Goal, goal.id)


def test_lookup_by_username_and_email(make_user, store):
    user = make_user("carol", email="carol@example.com")
    assert store.get_user_by_username("carol").id == user.id
    assert store.get_user_by_email("carol@example.com").id == user.id
    assert store.get_user_by_username("nobody") is None
    assert isinstance(store.get_by_id(User, user.id), User)


def test_null_for_a_required_column_is_a_validation_error(store, make_user):
    user = make_user()
    goal = store.create(Goal, user_id=user.id, title="Journal nightly")

    with pytest.raises(ValidationError):
        store.update(Goal, goal.id, progress=None)
    with pytest.raises(ValidationError):
        store.update(Goal, goal.id, title=None)

    goal = store.get_by_id(Goal, goal.id)
    assert goal.progress == 0
    assert goal.title == "Journal nightly"


def test_unique_violation_on_update_is_a_conflict(store, make_user):
    make_user("alice")
    bob = make_user("bob")
    with pytest.raises(ConflictError):
        store.update(User, bob.id, username="alice")


def test_uncommitted_create_is_rolled_back_with_its_transaction(store, make_user, db):
    user = make_user()
    mood = store.create(Mood, commit=False, user_id=user.id, mood="calm", intensity=3)
    assert mood.id is not None

    db.rollback()
    assert store.list_by_user_id(Mood, user.id) == []
