import random

import pytest

from trust_model import TrustModel


def test_initialize_trust_scores_is_idempotent():
    model = TrustModel()
    model.initialize_trust_scores(5)
    first = dict(model.get_trust_scores())
    model.initialize_trust_scores(5)

    assert dict(model.get_trust_scores()) == first
    assert first == {i: 1.0 for i in range(5)}
    assert not model.get_blacklisted_nodes()


def test_unknown_node_defaults_to_full_trust():
    model = TrustModel()
    assert model.get_trust_score(42) == 1.0
    assert 42 not in model.get_trust_scores()


def test_trust_scores_view_is_read_only():
    model = TrustModel()
    model.initialize_trust_scores(2)
    view = model.get_trust_scores()
    with pytest.raises(TypeError):
        view[0] = 0.0


def test_scores_are_clamped():
    model = TrustModel()
    for _ in range(10):
        model.update_trust_score(3, dropped=True)
    assert model.get_trust_score(3) == 0.0

    for _ in range(30):
        model.update_trust_score(3, dropped=False)
    assert model.get_trust_score(3) == 1.0


def test_drops_then_forwards_enter_and_leave_blacklist():
    model = TrustModel()
    membership = []
    for _ in range(10):
        model.update_trust_score(7, dropped=True)
        membership.append(model.is_blacklisted(7))

    # Blacklisted on the 4th drop (score 0.2), not before
    assert membership == [False, False, False, True] + [True] * 6
    assert model.get_trust_score(7) == 0.0

    membership = []
    for _ in range(20):
        model.update_trust_score(7, dropped=False)
        membership.append(model.is_blacklisted(7))

    # 0.1 .. 0.5 stay listed, 0.6 releases the node
    assert membership == [True] * 5 + [False] * 15
    assert model.get_trust_score(7) == 1.0


def test_hysteresis_on_the_way_back_up():
    model = TrustModel()
    for _ in range(4):
        model.update_trust_score(1, dropped=True)
    assert model.get_trust_score(1) == pytest.approx(0.2)
    assert model.is_blacklisted(1)

    expected = [(0.3, True), (0.4, True), (0.5, True), (0.6, False)]
    for score, listed in expected:
        model.update_trust_score(1, dropped=False)
        assert model.get_trust_score(1) == pytest.approx(score)
        assert model.is_blacklisted(1) is listed


def test_membership_is_sticky_inside_the_band():
    model = TrustModel()
    model.adjust_trust_score(4, -0.71)
    assert model.get_trust_score(4) == pytest.approx(0.29)
    assert model.is_blacklisted(4)

    for _ in range(5):
        model.adjust_trust_score(4, +0.1)
        assert model.is_blacklisted(4)
        model.adjust_trust_score(4, -0.1)
        assert model.is_blacklisted(4)
        assert 0.29 <= model.get_trust_score(4) + 1e-9 and model.get_trust_score(4) <= 0.59


def test_band_does_not_blacklist_a_trusted_node():
    model = TrustModel()
    model.adjust_trust_score(2, -0.5)
    assert model.get_trust_score(2) == pytest.approx(0.5)
    assert not model.is_blacklisted(2)


def test_reward_and_penalty_commute_away_from_bounds():
    a, b = TrustModel(), TrustModel()
    a.adjust_trust_score(0, -0.5)
    b.adjust_trust_score(0, -0.5)

    a.update_trust_score(0, dropped=False)
    a.update_trust_score(0, dropped=True)
    b.update_trust_score(0, dropped=True)
    b.update_trust_score(0, dropped=False)

    assert a.get_trust_score(0) == pytest.approx(b.get_trust_score(0))
    assert a.get_trust_score(0) == pytest.approx(0.4)


def test_random_walk_keeps_invariants():
    rng = random.Random(7)
    model = TrustModel()
    listed_since_low = False
    for _ in range(500):
        before = model.get_trust_score(9)
        after = model.update_trust_score(9, dropped=rng.random() < 0.5)
        step = abs(after - before)

        assert 0.0 <= after <= 1.0
        assert step == pytest.approx(0.1) or step == pytest.approx(0.2) or step < 0.2

        if after < 0.3:
            listed_since_low = True
        elif after >= 0.6:
            listed_since_low = False
        assert model.is_blacklisted(9) is listed_since_low
        if model.is_blacklisted(9):
            assert after < 0.6


def test_owner_is_never_blacklisted():
    model = TrustModel(owner_id=3)
    for _ in range(10):
        model.update_trust_score(3, dropped=True)
    assert model.get_trust_score(3) == 0.0
    assert 3 not in model.get_blacklisted_nodes()


def test_thresholds_must_leave_a_band():
    with pytest.raises(ValueError):
        TrustModel(trust_threshold=0.6, recovery_threshold=0.6)
