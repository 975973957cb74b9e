import pytest
import sys
from pathlib import Path
from types import SimpleNamespace

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

pytest.importorskip("tkinter")
pytest.importorskip("customtkinter")

from shift_planner.data_manager import DataValidationError
from shift_planner.scheduler_logic import SuggestionResult
from shift_planner.ui import SuggestionDialog


def _dialog(suggest_shifts):
    """Stand-in for the dialog: records what the worker thread schedules on the Tk loop"""
    scheduled, shown = [], []
    dialog = SimpleNamespace(
        scheduler=SimpleNamespace(suggest_shifts=suggest_shifts),
        after=lambda delay, callback, *args: scheduled.append((callback, args)),
        _show_error=lambda message: shown.append(("error", message)),
        _show_result=lambda result: shown.append(("result", result)),
    )
    return dialog, scheduled, shown


def _run_tk_callbacks(scheduled):
    for callback, args in scheduled:
        callback(*args)


def test_generation_error_reaches_the_dialog():
    """
    Why this is important: The solver runs on a worker thread. If its error
    never makes it back to the Tk loop, the dialog stays stuck on
    "Generating..." with no explanation.
    """
    def failing(requirements):
        raise DataValidationError("Unknown department d-1")

    dialog, scheduled, shown = _dialog(failing)
    SuggestionDialog._run_generation(dialog, [])
    _run_tk_callbacks(scheduled)

    assert shown == [("error", "Unknown department d-1")]


def test_unexpected_generation_error_reaches_the_dialog():
    def crashing(requirements):
        raise RuntimeError("solver crashed")

    dialog, scheduled, shown = _dialog(crashing)
    SuggestionDialog._run_generation(dialog, [])
    _run_tk_callbacks(scheduled)

    assert shown == [("error", "Unexpected error: solver crashed")]


def test_generation_result_reaches_the_dialog():
    result = SuggestionResult(success=True, suggestions=[], message="No shift requirements given")
    dialog, scheduled, shown = _dialog(lambda requirements: result)
    SuggestionDialog._run_generation(dialog, [])
    _run_tk_callbacks(scheduled)

    assert shown == [("result", result)]
