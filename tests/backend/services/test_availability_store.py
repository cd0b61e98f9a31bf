from datetime import date, datetime

import pytest

from backend.core.errors import ValidationError
from backend.models.availability import AvailabilityWindow, BlackoutRange, TimeBlock
from backend.services.availability_store import get_availability, set_availability


def test_set_then_get_returns_same_blocks_and_blackouts(db) -> None:
    weekly = {
        'monday': [TimeBlock('09:00', '12:00'), TimeBlock('13:00', '17:00')],
        'friday': [TimeBlock('10:30', '11:30')],
    }
    blackouts = [BlackoutRange(date(2026, 12, 24), date(2026, 12, 26))]

    set_availability(db, 'manager-1', 'tour', weekly, blackouts)
    window = get_availability(db, 'manager-1', 'tour')

    assert window.weekly_schedule == weekly
    assert window.blackouts == blackouts


def test_set_availability_replaces_existing_window_in_place(db) -> None:
    first = set_availability(db, 'manager-1', 'video_call', {'monday': [TimeBlock('09:00', '10:00')]})
    second = set_availability(db, 'manager-1', 'video_call', {'tuesday': [TimeBlock('14:00', '15:00')]})

    assert second.id == first.id
    assert second.weekly_schedule == {'tuesday': [TimeBlock('14:00', '15:00')]}
    assert second.blackouts == []
    assert db.query(AvailabilityWindow).count() == 1


def test_windows_are_independent_per_kind(db) -> None:
    set_availability(db, 'manager-1', 'video_call', {'monday': [TimeBlock('09:00', '10:00')]})
    set_availability(db, 'manager-1', 'tour', {'saturday': [TimeBlock('10:00', '14:00')]})

    assert get_availability(db, 'manager-1', 'video_call').weekly_schedule == {
        'monday': [TimeBlock('09:00', '10:00')],
    }
    assert get_availability(db, 'manager-1', 'tour').weekly_schedule == {
        'saturday': [TimeBlock('10:00', '14:00')],
    }


def test_get_availability_returns_none_when_missing(db) -> None:
    assert get_availability(db, 'nobody', 'tour') is None


@pytest.mark.parametrize(
    ('weekly', 'message'),
    [
        ({'funday': [TimeBlock('09:00', '10:00')]}, 'Invalid day name: funday'),
        ({'monday': [TimeBlock('9am', '10:00')]}, 'Invalid time format for monday. Use HH:MM format.'),
        ({'monday': [TimeBlock('10:00', '24:00')]}, 'Invalid time format for monday. Use HH:MM format.'),
        ({'monday': [TimeBlock('10:00', '10:00')]}, 'Start time must be before end time for monday.'),
        ({'monday': [TimeBlock('11:00', '10:00')]}, 'Start time must be before end time for monday.'),
        ({'monday': [TimeBlock('', '10:00')]}, 'Time block missing startTime or endTime for monday.'),
        ({'monday': [TimeBlock('09:00\n', '10:00')]}, 'Invalid time format for monday. Use HH:MM format.'),
        ({'monday': [TimeBlock('09:00', '10:00'), TimeBlock('09:00', '10:00')]}, 'Time blocks overlap for monday.'),
        ({'monday': [TimeBlock('13:00', '15:00'), TimeBlock('09:00', '13:30')]}, 'Time blocks overlap for monday.'),
    ],
)
def test_set_availability_rejects_malformed_blocks(db, weekly, message) -> None:
    with pytest.raises(ValidationError) as exception_info:
        set_availability(db, 'manager-1', 'tour', weekly)

    assert exception_info.value.message == message
    assert db.query(AvailabilityWindow).count() == 0


def test_set_availability_rejects_inverted_blackout(db) -> None:
    with pytest.raises(ValidationError):
        set_availability(
            db,
            'manager-1',
            'tour',
            {'monday': [TimeBlock('09:00', '10:00')]},
            [BlackoutRange(date(2026, 3, 2), date(2026, 3, 1))],
        )

    assert db.query(AvailabilityWindow).count() == 0


def test_set_availability_accepts_single_day_blackout(db) -> None:
    window = set_availability(
        db,
        'manager-1',
        'tour',
        {},
        [BlackoutRange(date(2026, 3, 2), date(2026, 3, 2))],
    )

    assert window.blackouts == [BlackoutRange(date(2026, 3, 2), date(2026, 3, 2))]


def test_set_availability_rejects_unknown_kind(db) -> None:
    with pytest.raises(ValidationError):
        set_availability(db, 'manager-1', 'open_house', {})


def test_invalid_update_leaves_previous_window_untouched(db) -> None:
    set_availability(db, 'manager-1', 'tour', {'monday': [TimeBlock('09:00', '10:00')]})

    with pytest.raises(ValidationError):
        set_availability(db, 'manager-1', 'tour', {'monday': [TimeBlock('12:00', '11:00')]})

    assert get_availability(db, 'manager-1', 'tour').weekly_schedule == {
        'monday': [TimeBlock('09:00', '10:00')],
    }


def test_adjacent_blocks_are_kept_in_submitted_order(db) -> None:
    blocks = [TimeBlock('13:00', '17:00'), TimeBlock('09:00', '13:00')]

    window = set_availability(db, 'manager-1', 'tour', {'monday': blocks})

    assert window.weekly_schedule == {'monday': blocks}


def test_set_availability_rejects_blackout_with_time_of_day(db) -> None:
    set_availability(db, 'manager-1', 'tour', {'monday': [TimeBlock('09:00', '10:00')]})

    with pytest.raises(ValidationError) as exception_info:
        set_availability(
            db,
            'manager-1',
            'tour',
            {'monday': [TimeBlock('09:00', '10:00')]},
            [BlackoutRange(datetime(2026, 1, 5), datetime(2026, 1, 5))],
        )

    assert exception_info.value.message == 'Blocked date range must use calendar dates without a time.'
    assert get_availability(db, 'manager-1', 'tour').blackouts == []
