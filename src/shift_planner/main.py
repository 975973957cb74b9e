"""
Main Entry Point for Shift Planning System

Wires the data store, conflict checker, swap workflow and exporters into
the desktop window, with global error handling and logging.
"""

import sys
import logging
import traceback
from pathlib import Path
from datetime import datetime
from typing import Optional
from tkinter import messagebox

from shift_planner import __version__
from shift_planner.data_manager import DataManager, DataManagerError
from shift_planner.scheduler_logic import ShiftScheduler
from shift_planner.swap_workflow import SwapWorkflow
from shift_planner.reporting import ExportManager

# Import name -> requirement to install
REQUIRED_PACKAGES = {
    'customtkinter': 'customtkinter>=5.2.0',
    'pandas': 'pandas>=2.0.0',
    'openpyxl': 'openpyxl>=3.1.0',
    'reportlab': 'reportlab>=4.0.0',
    'ortools': 'ortools>=9.8',
}


def setup_logging(log_dir: Path = Path("logs")):
    """Log to a dated file in log_dir and to stdout"""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"shift_planner_{datetime.now().strftime('%Y%m%d')}.log"

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
    return logging.getLogger(__name__)


def check_dependencies():
    """Raise ImportError naming every required package that cannot be imported"""
    missing = []
    for module, requirement in REQUIRED_PACKAGES.items():
        try:
            __import__(module)
        except ImportError:
            missing.append(requirement)

    if missing:
        raise ImportError(
            f"Missing required dependencies: {', '.join(missing)}\n"
            "Install the project with: pip install -e ."
        )


def resolve_data_file(data_file: Optional[str] = None) -> Path:
    """Explicit path if given, else data/schedule_data.json beside the package or frozen executable"""
    if data_file:
        return Path(data_file)
    if getattr(sys, 'frozen', False):
        base_path = Path(sys.executable).parent
    else:
        base_path = Path(__file__).parent.parent
    return base_path / "data" / "schedule_data.json"


def handle_exception(exc_type, exc_value, exc_traceback):
    """Global exception handler"""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    logger = logging.getLogger(__name__)
    logger.error("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    try:
        messagebox.showerror(
            "Shift Planner Error",
            f"Something went wrong and was written to the log:\n\n{exc_type.__name__}: {exc_value}"
        )
    except Exception:
        logger.debug("No display available for the error dialog")


class ShiftPlannerApp:
    """Owns the services and the main window for one session"""

    def __init__(self, data_file: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self.data_file = resolve_data_file(data_file)
        self.data_manager = None
        self.scheduler = None
        self.swap_workflow = None
        self.export_manager = None
        self.main_window = None
        self._startup_error = None

    def initialize(self) -> bool:
        """Open the data file and build the services on top of it"""
        try:
            check_dependencies()
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            self.data_manager = DataManager(str(self.data_file))
        except (ImportError, DataManagerError, OSError) as e:
            self.logger.error(f"Failed to initialize application: {e}")
            self.logger.debug(traceback.format_exc())
            self._startup_error = e
            return False

        self.scheduler = ShiftScheduler(self.data_manager)
        self.swap_workflow = SwapWorkflow(self.data_manager)
        self.export_manager = ExportManager(self.data_manager)

        schedule = self.data_manager.load_all()
        self.logger.info(
            f"Loaded {self.data_file}: {len(schedule.workers)} workers, "
            f"{len(schedule.shifts)} shifts, {self.data_manager.get_unread_count()} unread notifications"
        )
        return True

    def run(self) -> bool:
        if not self.initialize():
            self.show_initialization_error(self._startup_error)
            return False

        try:
            # Imported late so a missing display only fails here
            from shift_planner.ui import MainWindow

            self.main_window = MainWindow(
                data_manager=self.data_manager,
                scheduler=self.scheduler,
                swap_workflow=self.swap_workflow
            )
            self.main_window.export_manager = self.export_manager
            self.main_window.mainloop()
            self.logger.info("Main window closed")
            return True

        except Exception as e:
            self.logger.error(f"Application error: {e}", exc_info=True)
            self.show_runtime_error(e)
            return False

        finally:
            self.shutdown()

    def show_initialization_error(self, error: Exception):
        try:
            import tkinter as tk
            root = tk.Tk()
            root.withdraw()
            messagebox.showerror(
                "Shift Planner could not start",
                f"{error}\n\nData file: {self.data_file}\n"
                f"See the logs directory for details."
            )
            root.destroy()
        except Exception as e:
            print(f"Failed to show initialization error: {e}")

    def show_runtime_error(self, error: Exception):
        try:
            messagebox.showerror(
                "Shift Planner stopped",
                f"{type(error).__name__}: {error}\n\nYour last saved changes are in {self.data_file}."
            )
        except Exception as e:
            print(f"Failed to show runtime error: {e}")

    def shutdown(self):
        """Flush the document one last time"""
        if not self.data_manager:
            return
        try:
            self.data_manager.save_data()
            self.logger.info("Data saved on exit")
        except DataManagerError as e:
            self.logger.error(f"Error saving data on exit: {e}")


def main():
    """Entry point; an optional first argument selects the data file"""
    sys.excepthook = handle_exception

    logger = setup_logging()
    logger.info(f"Starting Shift Planner {__version__}")

    app = ShiftPlannerApp(sys.argv[1] if len(sys.argv) > 1 else None)
    sys.exit(0 if app.run() else 1)


if __name__ == "__main__":
    main()
