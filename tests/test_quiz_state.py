import pytest

from app.services.quiz_state import (
    InvalidTransitionError,
    ProfileTag,
    SessionStatus,
    TakerStatus,
    can_transition,
    complete_session,
    complete_taker,
    profile_tag_for_score,
    restart_session,
    start_taker,
    transition,
)


class TestSessionTransitions:
    def test_active_to_completed(self):
        assert complete_session(SessionStatus.ACTIVE) == SessionStatus.COMPLETED

    def test_active_to_restarted(self):
        assert restart_session(SessionStatus.ACTIVE) == SessionStatus.RESTARTED

    def test_completed_is_terminal(self):
        with pytest.raises(InvalidTransitionError):
            restart_session(SessionStatus.COMPLETED)

    def test_restarted_is_terminal(self):
        with pytest.raises(InvalidTransitionError):
            transition(SessionStatus.RESTARTED, SessionStatus.ACTIVE)


class TestTakerTransitions:
    def test_first_start(self):
        assert start_taker(TakerStatus.NOT_STARTED) == TakerStatus.ACTIVE

    def test_restart_while_active(self):
        assert start_taker(TakerStatus.ACTIVE) == TakerStatus.ACTIVE

    def test_replay_after_completion(self):
        assert start_taker(TakerStatus.COMPLETED) == TakerStatus.ACTIVE

    def test_cannot_complete_before_start(self):
        with pytest.raises(InvalidTransitionError):
            complete_taker(TakerStatus.NOT_STARTED)


class TestCanTransition:
    def test_mixed_enums_are_rejected(self):
        assert can_transition(SessionStatus.ACTIVE, TakerStatus.COMPLETED) is False

    def test_valid_returns_true(self):
        assert can_transition(TakerStatus.ACTIVE, TakerStatus.COMPLETED) is True


class TestProfileTag:
    @pytest.mark.parametrize(
        "score, expected",
        [(0, ProfileTag.DISCOVERY), (39, ProfileTag.DISCOVERY), (40, ProfileTag.ACTIVE), (80, ProfileTag.VIP)],
    )
    def test_thresholds(self, score, expected):
        assert profile_tag_for_score(score) == expected
