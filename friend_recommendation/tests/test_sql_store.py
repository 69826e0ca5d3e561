"""
Tests for the SQLAlchemy Profile Store on in-memory SQLite.
"""

import asyncio
import logging
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import init_db
from friend_recommendation.logic.contracts import CandidateFilter
from friend_recommendation.logic.errors import DataAccessError
from friend_recommendation.models import (
    Department,
    SocialRelationship,
    University,
    User,
    UserEngagementPattern,
    UserInteraction,
    UserProfile,
)
from friend_recommendation.store import SqlProfileStore

from .factories import NOW

NAIVE_NOW = NOW.replace(tzinfo=None)


def _memory_engine():
    # One shared connection so worker threads see the same database
    return create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )


def _user(session, user_id, verified=True, completeness=80.0, university_id="uni-a", department_id="cs",
          user_type="student", last_active=NAIVE_NOW, **profile):
    session.add(User(id=user_id, email=f"{user_id}@example.edu", display_name=user_id.title(),
                     email_verified=verified))
    session.add(UserProfile(
        user_id=user_id,
        user_type=user_type,
        university_id=university_id,
        department_id=department_id,
        major="Software Engineering",
        graduation_year=2025,
        interests=["Programming", "Music"],
        profile_completion_score=completeness,
        last_active=last_active,
        **profile,
    ))


@pytest.fixture
def session_factory():
    engine = _memory_engine()
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True)

    with factory() as session:
        session.add_all([
            University(id="uni-a", name="University A", institution_type="research", global_rank=50,
                       latitude=42.36, longitude=-71.06, city="Boston", state="MA", country="US"),
            University(id="uni-b", name="University B", global_rank=300),
            Department(id="cs", university_id="uni-a", name="Computer Science", ranking=20),
        ])
        session.flush()
        _user(session, "alice", latitude=42.37, longitude=-71.11, city="Cambridge", state="MA",
              interest_profile={"categories": {"technology": ["Programming"]}})
        _user(session, "bob", completeness=90.0)
        _user(session, "carol", completeness=70.0, last_active=NAIVE_NOW - timedelta(days=1))
        _user(session, "dave", university_id="uni-b", department_id=None)
        _user(session, "erin", verified=False)
        _user(session, "frank", user_type=None, completeness=20.0)
        session.flush()

        session.add_all([
            SocialRelationship(follower_id="alice", following_id="bob", relationship_type="follow"),
            SocialRelationship(follower_id="carol", following_id="alice", relationship_type="follow"),
            SocialRelationship(follower_id="alice", following_id="dave", relationship_type="follow",
                               status="inactive"),
            SocialRelationship(follower_id="alice", following_id="erin", relationship_type="block"),
            UserInteraction(user_id="alice", target_user_id="bob", type="like",
                            created_at=NAIVE_NOW - timedelta(days=2)),
            UserInteraction(user_id="bob", target_user_id="alice", type="message",
                            created_at=NAIVE_NOW - timedelta(hours=1)),
            UserInteraction(user_id="bob", target_user_id="carol", type="like", created_at=NAIVE_NOW),
            UserEngagementPattern(user_id="alice", hours=[1.0] * 24, days=[2.0] * 7,
                                  activities={"post": 3, "like": 10}, content_types={"image": 4}),
        ])
        session.commit()
    return factory


@pytest.fixture
def sql_store(session_factory):
    return SqlProfileStore(session_factory)


def run(coro):
    return asyncio.run(coro)


def test_profile_mapping(sql_store):
    profile = run(sql_store.get_user_profile("alice"))

    assert profile.display_name == "Alice"
    assert profile.university.university_name == "University A"
    assert profile.university.department_name == "Computer Science"
    assert profile.university.global_rank == 50
    assert profile.university.department_rank == 20
    assert profile.university.location.city == "Boston"
    assert profile.location.city == "Cambridge"
    assert profile.last_active == NOW
    assert profile.interest_profile.categories == {"technology": ["Programming"]}
    assert profile.interest_profile.interests == ["Programming", "Music"]


def test_missing_profile(sql_store):
    assert run(sql_store.get_user_profile("ghost")) is None


def test_connections_and_blocks(sql_store):
    assert run(sql_store.get_existing_connections("alice")) == ["bob", "carol"]
    assert run(sql_store.get_blocked_users("alice")) == ["erin"]


def test_candidates_filtered_and_ordered(sql_store):
    rows = run(sql_store.get_candidates(CandidateFilter(
        exclude_user_ids=["alice"],
        university_id="uni-a",
        min_completeness=30,
        active_since=NOW - timedelta(days=90),
    )))
    assert [r.user_id for r in rows] == ["bob", "carol"]


def test_candidate_type_filter_keeps_untyped_users(sql_store):
    rows = run(sql_store.get_candidates(CandidateFilter(exclude_types=["student"], min_completeness=0)))
    assert [r.user_id for r in rows] == ["frank"]


def test_candidate_limit(sql_store):
    assert len(run(sql_store.get_candidates(CandidateFilter(limit=2)))) == 2


def test_interactions_in_both_directions(sql_store):
    interactions = run(sql_store.get_user_interactions("alice", "bob"))

    assert [i.type for i in interactions] == ["message", "like"]
    assert interactions[0].created_at == NOW - timedelta(hours=1)


def test_engagement_pattern(sql_store):
    pattern = run(sql_store.get_user_engagement_pattern("alice"))

    assert pattern.time_pattern.days == [2.0] * 7
    assert pattern.activity_pattern.like == 10
    assert pattern.content_pattern.image == 4
    assert run(sql_store.get_user_engagement_pattern("bob")) is None


def test_rankings(sql_store):
    assert run(sql_store.get_university_ranking("uni-b")) == 300
    assert run(sql_store.get_department_ranking("cs")) == 20
    assert run(sql_store.get_university_ranking("nowhere")) is None


def test_database_errors_become_data_access_errors():
    store = SqlProfileStore(sessionmaker(bind=_memory_engine()))
    with pytest.raises(DataAccessError) as excinfo:
        run(store.get_user_profile("alice"))
    assert excinfo.value.operation == "get_user_profile"


def test_invalid_stored_coordinates_are_dropped(session_factory, sql_store):
    with session_factory() as session:
        _user(session, "gina", completeness=95.0, latitude=999.0, longitude=-71.0, city="Nowhere")
        session.commit()

    rows = run(sql_store.get_candidates(CandidateFilter(exclude_user_ids=["alice"], university_id="uni-a")))
    gina = next(r for r in rows if r.user_id == "gina")

    assert gina.location is None
    assert gina.university.location.city == "Boston"
    assert run(sql_store.get_user_profile("gina")).location is None


def test_candidate_with_invalid_profile_is_skipped(session_factory, sql_store, caplog):
    with session_factory() as session:
        _user(session, "hank", completeness=150.0)
        session.commit()

    with caplog.at_level(logging.WARNING, logger="friend_recommendation.store.sql_store"):
        rows = run(sql_store.get_candidates(CandidateFilter(exclude_user_ids=["alice"], university_id="uni-a")))

    assert [r.user_id for r in rows] == ["bob", "carol", "frank"]
    assert "Skipping candidate hank" in caplog.text
