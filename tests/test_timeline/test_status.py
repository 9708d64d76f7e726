"""Tests for task status transitions."""

import pytest

from recovery_os.timeline.exceptions import InvalidStatusTransitionError
from recovery_os.timeline.models import TaskStatus
from recovery_os.timeline.status import TERMINAL_STATUSES, can_transition, check_transition


class TestTransitions:
    @pytest.mark.parametrize("target", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_pending_can_finish(self, target):
        assert can_transition(TaskStatus.PENDING, target)
        assert check_transition(TaskStatus.PENDING, target) is True

    def test_missed_can_be_caught_up(self):
        assert check_transition(TaskStatus.MISSED, TaskStatus.COMPLETED) is True

    def test_repeat_completion_is_noop(self):
        assert check_transition(TaskStatus.COMPLETED, TaskStatus.COMPLETED) is False

    def test_terminal_statuses_are_final(self):
        with pytest.raises(InvalidStatusTransitionError) as exc:
            check_transition(TaskStatus.COMPLETED, TaskStatus.SKIPPED)
        assert exc.value.current == "completed"
        assert exc.value.requested == "skipped"

    def test_cannot_reopen(self):
        assert not can_transition(TaskStatus.CANCELLED, TaskStatus.PENDING)
        with pytest.raises(InvalidStatusTransitionError):
            check_transition(TaskStatus.SKIPPED, TaskStatus.PENDING)

    def test_upcoming_is_not_a_stored_status(self):
        assert not can_transition(TaskStatus.UPCOMING, TaskStatus.COMPLETED)
        assert not can_transition(TaskStatus.PENDING, TaskStatus.UPCOMING)
