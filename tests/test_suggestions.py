import pytest
import sys
from pathlib import Path
import json

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shift_planner.data_manager import DataManager, DataValidationError
from shift_planner.scheduler_logic import ShiftScheduler, ShiftRequirement, ShiftCandidate


@pytest.fixture
def data_manager(tmp_path):
    data_file = tmp_path / "schedule.json"
    data_file.write_text(json.dumps({}))
    dm = DataManager(str(data_file))
    dm.set_setting("suggestionTimeLimitSeconds", 5.0)
    return dm


@pytest.fixture
def scheduler(data_manager):
    return ShiftScheduler(data_manager)


def test_suggestions_skip_workers_already_booked(data_manager, scheduler):
    """
    Why this is important: A suggestion that double books a worker would be
    flagged as a conflict the moment it is applied.
    """
    alice = data_manager.add_worker("Alice")
    bob = data_manager.add_worker("Bob")
    packing = data_manager.add_department("Packing")
    data_manager.add_shift(alice.id, "2025-03-10", "08:00", "16:00")

    result = scheduler.suggest_shifts([
        ShiftRequirement(date="2025-03-10", start_time="10:00", end_time="14:00",
                         department_id=packing.id)
    ])

    assert result.success
    assert [s.worker_id for s in result.suggestions] == [bob.id]
    assert result.suggestions[0].to_dict() == {
        "workerName": "Bob",
        "date": "2025-03-10",
        "startTime": "10:00",
        "endTime": "14:00",
        "departmentName": "Packing",
    }
    assert result.unfilled == []


def test_machine_is_never_double_booked(data_manager, scheduler):
    data_manager.add_worker("Alice")
    data_manager.add_worker("Bob")
    lathe = data_manager.add_machine("Lathe")

    result = scheduler.suggest_shifts([
        ShiftRequirement(date="2025-03-10", start_time="08:00", end_time="12:00", machine_id=lathe.id),
        ShiftRequirement(date="2025-03-10", start_time="10:00", end_time="14:00", machine_id=lathe.id),
    ])

    assert len(result.suggestions) == 1
    assert result.suggestions[0].machine_name == "Lathe"
    assert len(result.unfilled) == 1
    assert result.unfilled[0]["missing"] == 1


def test_overlapping_slots_need_different_workers(data_manager, scheduler):
    data_manager.add_worker("Alice")
    data_manager.add_worker("Bob")

    result = scheduler.suggest_shifts([
        ShiftRequirement(date="2025-03-10", start_time="08:00", end_time="12:00", workers_needed=2),
        ShiftRequirement(date="2025-03-10", start_time="11:00", end_time="15:00"),
    ])

    assert len(result.suggestions) == 2
    assert sum(u["missing"] for u in result.unfilled) == 1
    assert len({s.worker_id for s in result.suggestions}) == 2


def test_load_is_spread_across_workers(data_manager, scheduler):
    data_manager.add_worker("Alice")
    data_manager.add_worker("Bob")

    result = scheduler.suggest_shifts([
        ShiftRequirement(date="2025-03-10", start_time="06:00", end_time="10:00"),
        ShiftRequirement(date="2025-03-10", start_time="14:00", end_time="18:00"),
    ])

    assert len({s.worker_id for s in result.suggestions}) == 2


def test_invalid_requirements_are_rejected(data_manager, scheduler):
    data_manager.add_worker("Alice")

    with pytest.raises(DataValidationError):
        scheduler.suggest_shifts([ShiftRequirement(date="2025-03-10", start_time="12:00", end_time="08:00")])
    with pytest.raises(DataValidationError):
        scheduler.suggest_shifts([ShiftRequirement(date="2025-03-10", start_time="08:00", end_time="12:00",
                                                   department_id="d-missing")])
    with pytest.raises(DataValidationError):
        scheduler.suggest_shifts([ShiftRequirement(date="2025-03-10", start_time="08:00", end_time="12:00",
                                                   workers_needed=0)])


def test_no_workers_reports_everything_unfilled(scheduler):
    result = scheduler.suggest_shifts([
        ShiftRequirement(date="2025-03-10", start_time="08:00", end_time="12:00", workers_needed=3)
    ])
    assert not result.success
    assert result.unfilled[0]["missing"] == 3


def test_apply_suggestions_skips_ones_that_became_conflicts(data_manager, scheduler):
    """
    Why this is important: Suggestions can sit on screen while someone else
    books the same worker. Applying must re-check instead of trusting them.
    """
    alice = data_manager.add_worker("Alice")
    result = scheduler.suggest_shifts([
        ShiftRequirement(date="2025-03-10", start_time="08:00", end_time="12:00"),
        ShiftRequirement(date="2025-03-11", start_time="08:00", end_time="12:00"),
    ])
    assert len(result.suggestions) == 2

    data_manager.add_shift(alice.id, "2025-03-11", "09:00", "10:00")
    saved = scheduler.apply_suggestions(result.suggestions)

    assert [s.date for s in saved] == ["2025-03-10"]
    assert len(data_manager.get_shifts()) == 2
    check = scheduler.check_conflict(ShiftCandidate.from_shift(saved[0]))
    assert not check.has_conflict


def test_apply_suggestions_skips_deleted_machine(data_manager, scheduler):
    """
    Why this is important: A machine removed while suggestions are on screen
    must only drop its own slot, not abort the whole batch.
    """
    data_manager.add_worker("Alice")
    data_manager.add_worker("Bob")
    drill = data_manager.add_machine("Drill")
    result = scheduler.suggest_shifts([
        ShiftRequirement(date="2025-03-10", start_time="08:00", end_time="12:00", machine_id=drill.id),
        ShiftRequirement(date="2025-03-11", start_time="08:00", end_time="12:00"),
    ])
    assert len(result.suggestions) == 2

    data_manager.delete_machine(drill.id)
    saved = scheduler.apply_suggestions(result.suggestions)

    assert [s.date for s in saved] == ["2025-03-11"]
    assert [s.date for s in data_manager.get_shifts()] == ["2025-03-11"]
