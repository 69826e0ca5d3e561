"""
Tests for ranking, the diversity filter and output assembly.
"""

from datetime import timedelta

import pytest

from friend_recommendation.logic.contracts import (
    CandidateMetadata,
    PrivacyLevel,
    RecommendationCandidate,
    RecommendationRequest,
    ScoreFactors,
)
from friend_recommendation.logic.output_assembler import assemble_output, generate_explanations
from friend_recommendation.logic.ranker import (
    apply_diversity_filter,
    calculate_diversity,
    filter_min_score,
    rank_candidates,
    select_top,
)

from .factories import NOW


def _rec(user_id, score, university_id="uni-a", department_id="cs", shared=None, **factors):
    return RecommendationCandidate(
        user_id=user_id,
        score=score,
        factors=ScoreFactors(**factors),
        metadata=CandidateMetadata(
            university_id=university_id,
            university_name=university_id and university_id.upper(),
            department_id=department_id,
            department_name=department_id,
            shared_interests=shared or [],
            profile_completeness=50,
        ),
    )


def test_rank_is_descending_and_stable():
    ranked = rank_candidates([_rec("a", 10), _rec("b", 30), _rec("c", 10), _rec("d", 30)])
    assert [r.user_id for r in ranked] == ["b", "d", "a", "c"]


def test_min_score_filter_is_inclusive():
    kept = filter_min_score([_rec("a", 49.9), _rec("b", 50.0)], 50)
    assert [r.user_id for r in kept] == ["b"]


def test_diversity_caps_distinct_universities_not_members():
    ranked = [_rec(f"u{i}", 90 - i, university_id=f"uni-{i}", department_id=None) for i in range(7)]
    ranked += [_rec("extra", 10, university_id="uni-0", department_id=None)]

    kept = apply_diversity_filter(ranked, diversity_factor=1.0)

    assert [r.user_id for r in kept] == ["u0", "u1", "u2", "u3", "u4", "extra"]


def test_diversity_caps_distinct_departments():
    ranked = [_rec(f"u{i}", 90 - i, department_id=f"dept-{i}") for i in range(12)]
    kept = apply_diversity_filter(ranked, diversity_factor=1.0)
    assert len(kept) == 10


def test_diversity_stops_at_target_size():
    ranked = [_rec(f"u{i}", 90 - i) for i in range(10)]
    kept = apply_diversity_filter(ranked, diversity_factor=0.25)
    assert [r.user_id for r in kept] == ["u0", "u1", "u2"]


def test_zero_diversity_factor_disables_filter():
    ranked = [_rec(f"u{i}", 90 - i, university_id=f"uni-{i}") for i in range(8)]
    assert apply_diversity_filter(ranked, diversity_factor=0) == ranked


def test_unknown_university_is_always_admitted():
    ranked = [_rec(f"u{i}", 90 - i, university_id=f"uni-{i}", department_id=None) for i in range(5)]
    ranked += [_rec("nouni", 5, university_id=None, department_id=None)]
    kept = apply_diversity_filter(ranked, diversity_factor=1.0)
    assert kept[-1].user_id == "nouni"


def test_calculate_diversity():
    recs = [
        _rec("a", 80, department_id="cs", shared=["Music"]),
        _rec("b", 70, department_id="math", shared=["Music"]),
    ]
    # 1 university + 2 departments + 1 interest over 3 * 2
    assert calculate_diversity(recs) == pytest.approx(4 / 6)
    assert calculate_diversity([]) == 0.0


def test_select_top():
    assert [r.user_id for r in select_top([_rec("a", 3), _rec("b", 2), _rec("c", 1)], 2)] == ["a", "b"]


def test_threshold_explanations():
    rec = _rec("a", 90, university=0.9, mutual_connections=0.75, interests=0.61, engagement=0.6)
    rec.metadata.profile_completeness = 90
    rec.metadata.last_active = NOW - timedelta(days=2)

    assert generate_explanations(rec, NOW) == [
        "Strong university connection",
        "High mutual connection overlap",
        "Strong interest alignment",
        "Similar activity patterns",
        "Complete profile",
        "Recently active",
    ]


def test_thresholds_are_strict():
    rec = _rec("a", 50, university=0.8, interests=0.6)
    rec.metadata.profile_completeness = 80
    rec.metadata.last_active = NOW - timedelta(days=7)
    assert generate_explanations(rec, NOW) == []


def test_assemble_output_appends_threshold_explanations():
    rec = _rec("a", 90, university=0.9)
    rec.explanations.append("Same university: UNI-A")

    response = assemble_output(
        recommendations=[rec],
        total_candidates=4,
        weights={"university": 0.4},
        bonus_weights={"recency": 0.05},
        privacy_level="university",
        now=NOW,
        processing_time_ms=12.3456,
    )

    assert response.recommendations[0].explanations == ["Same university: UNI-A", "Strong university connection"]
    assert response.total_candidates == 4
    assert response.cache_hit is False
    assert response.processing_time_ms == 12.35
    assert response.metadata.privacy == "university"
    assert response.metadata.timestamp == NOW
    assert response.algorithm_version == "2.13.0"


@pytest.mark.parametrize("privacy_level", [PrivacyLevel.FRIENDS, "friends"])
def test_assemble_output_reports_privacy_as_plain_string(privacy_level):
    response = assemble_output([], 0, {}, {}, privacy_level, NOW, 1.0)

    assert response.metadata.privacy == "friends"
    assert response.model_dump(mode="json")["metadata"]["privacy"] == "friends"


def test_default_request_privacy_is_a_plain_string():
    assert RecommendationRequest(user_id="alice").privacy_level == "university"
    assert type(RecommendationRequest(user_id="alice").privacy_level) is str
