"""
User Interface for Shift Planning System

CustomTkinter-based GUI with a weekly calendar of shifts, live conflict
warnings, swap requests, a notification panel and entity management.
"""

import customtkinter as ctk
from tkinter import messagebox, filedialog
from datetime import date, timedelta
from typing import Dict, List, Optional, Callable
import threading
import logging

from .data_manager import (
    DataManager, DataManagerError, Shift, Notification, SwapRequestNotification,
    PendingSwap, DATE_FORMAT, week_start_for
)
from .scheduler_logic import ShiftScheduler, ShiftCandidate, ShiftRequirement, SuggestionResult
from .swap_workflow import SwapWorkflow, SwapDecision
from .reporting import ExportManager

logger = logging.getLogger(__name__)


# Configure CustomTkinter
ctk.set_appearance_mode("light")
ctk.set_default_color_theme("blue")

NO_MACHINE = "No machine"
NO_DEPARTMENT = "No department"


def _center_on_parent(window, parent):
    window.update_idletasks()
    x = parent.winfo_x() + (parent.winfo_width() // 2) - (window.winfo_width() // 2)
    y = parent.winfo_y() + (parent.winfo_height() // 2) - (window.winfo_height() // 2)
    window.geometry(f"+{x}+{y}")


class ShiftDialog(ctk.CTkToplevel):
    """Dialog for adding/editing a shift with live conflict checking"""

    def __init__(self, parent, data_manager: DataManager, scheduler: ShiftScheduler,
                 shift: Optional[Shift] = None, initial_date: Optional[date] = None,
                 callback: Callable = None):
        super().__init__(parent)
        self.data_manager = data_manager
        self.scheduler = scheduler
        self.shift = shift
        self.callback = callback
        self._pending_check = None

        schedule = data_manager.load_all()
        self.worker_ids = {w.name: w.id for w in schedule.workers}
        self.department_ids = {d.name: d.id for d in schedule.departments}
        self.machine_ids = {m.name: m.id for m in schedule.machines}
        self.initial_date = initial_date or date.today()

        self.title("Add Shift" if shift is None else "Edit Shift")
        self.geometry("420x560")
        self.transient(parent)
        self.grab_set()

        self._create_widgets()
        self._populate_fields(schedule)
        self._schedule_conflict_check()
        _center_on_parent(self, parent)

    def _create_widgets(self):
        main_frame = ctk.CTkFrame(self)
        main_frame.pack(fill="both", expand=True, padx=20, pady=20)

        ctk.CTkLabel(main_frame, text="Worker:").pack(anchor="w")
        self.worker_var = ctk.StringVar()
        ctk.CTkOptionMenu(main_frame, values=list(self.worker_ids) or [""],
                          variable=self.worker_var, width=340).pack(pady=(0, 10))

        ctk.CTkLabel(main_frame, text="Date (YYYY-MM-DD):").pack(anchor="w")
        self.date_var = ctk.StringVar()
        ctk.CTkEntry(main_frame, textvariable=self.date_var, width=340).pack(pady=(0, 10))

        time_frame = ctk.CTkFrame(main_frame, fg_color="transparent")
        time_frame.pack(fill="x", pady=(0, 10))
        self.start_var = ctk.StringVar()
        self.end_var = ctk.StringVar()
        ctk.CTkLabel(time_frame, text="Start:").pack(side="left")
        ctk.CTkEntry(time_frame, textvariable=self.start_var, width=80).pack(side="left", padx=5)
        ctk.CTkLabel(time_frame, text="End:").pack(side="left", padx=(15, 0))
        ctk.CTkEntry(time_frame, textvariable=self.end_var, width=80).pack(side="left", padx=5)

        ctk.CTkLabel(main_frame, text="Department:").pack(anchor="w")
        self.department_var = ctk.StringVar(value=NO_DEPARTMENT)
        ctk.CTkOptionMenu(main_frame, values=[NO_DEPARTMENT] + list(self.department_ids),
                          variable=self.department_var, width=340).pack(pady=(0, 10))

        ctk.CTkLabel(main_frame, text="Machine:").pack(anchor="w")
        self.machine_var = ctk.StringVar(value=NO_MACHINE)
        ctk.CTkOptionMenu(main_frame, values=[NO_MACHINE] + list(self.machine_ids),
                          variable=self.machine_var, width=340).pack(pady=(0, 10))

        ctk.CTkLabel(main_frame, text="Notes:").pack(anchor="w")
        self.notes_entry = ctk.CTkEntry(main_frame, width=340)
        self.notes_entry.pack(pady=(0, 10))

        self.conflict_label = ctk.CTkLabel(main_frame, text="", text_color="orange", wraplength=340)
        self.conflict_label.pack(pady=(0, 10))

        for var in (self.worker_var, self.date_var, self.start_var, self.end_var, self.machine_var):
            var.trace_add("write", lambda *_: self._schedule_conflict_check())

        button_frame = ctk.CTkFrame(main_frame)
        button_frame.pack(fill="x", pady=(10, 0))
        ctk.CTkButton(button_frame, text="Cancel", command=self.destroy, width=100).pack(side="right", padx=(10, 0))
        ctk.CTkButton(button_frame, text="Save", command=self._save, width=100).pack(side="right")

    def _populate_fields(self, schedule):
        if self.shift:
            self.worker_var.set(schedule.worker_name(self.shift.worker_id))
            self.date_var.set(self.shift.date)
            self.start_var.set(self.shift.start_time)
            self.end_var.set(self.shift.end_time)
            self.department_var.set(schedule.department_name(self.shift.department_id, NO_DEPARTMENT))
            self.machine_var.set(schedule.machine_name(self.shift.machine_id, NO_MACHINE))
            self.notes_entry.insert(0, self.shift.notes or "")
        else:
            if self.worker_ids:
                self.worker_var.set(next(iter(self.worker_ids)))
            if self.department_ids:
                self.department_var.set(next(iter(self.department_ids)))
            self.date_var.set(self.initial_date.strftime(DATE_FORMAT))
            self.start_var.set(self.data_manager.get_setting("defaultShiftStart", "08:00"))
            self.end_var.set(self.data_manager.get_setting("defaultShiftEnd", "16:00"))

    def _form_values(self) -> Dict:
        return {
            "worker_id": self.worker_ids.get(self.worker_var.get(), ""),
            "date_str": self.date_var.get().strip(),
            "start_time": self.start_var.get().strip(),
            "end_time": self.end_var.get().strip(),
            "department_id": self.department_ids.get(self.department_var.get()),
            "machine_id": self.machine_ids.get(self.machine_var.get()),
            "notes": self.notes_entry.get().strip() or None,
        }

    def _schedule_conflict_check(self):
        # Debounce while the user is typing
        if self._pending_check is not None:
            self.after_cancel(self._pending_check)
        self._pending_check = self.after(500, self._check_conflict)

    def _check_conflict(self):
        self._pending_check = None
        values = self._form_values()
        if not values["worker_id"]:
            self.conflict_label.configure(text="")
            return
        candidate = ShiftCandidate(
            worker_id=values["worker_id"],
            date=values["date_str"],
            start_time=values["start_time"],
            end_time=values["end_time"],
            machine_id=values["machine_id"],
            exclude_shift_id=self.shift.id if self.shift else None
        )
        try:
            result = self.scheduler.check_conflict(candidate)
            self.conflict_label.configure(text=f"⚠️ {result.message}" if result.has_conflict else "")
        except DataManagerError as e:
            self.conflict_label.configure(text=f"⚠️ {e}")

    def _save(self):
        values = self._form_values()
        if not values["worker_id"]:
            messagebox.showerror("Error", "A worker is required", parent=self)
            return
        if self.callback:
            if not self.callback(values):
                return
        self.destroy()


class SwapRequestDialog(ctk.CTkToplevel):
    """Dialog for offering a shift to another worker"""

    def __init__(self, parent, data_manager: DataManager, shift: Shift, callback: Callable = None):
        super().__init__(parent)
        self.shift = shift
        self.callback = callback

        schedule = data_manager.load_all()
        self.worker_ids = {w.name: w.id for w in schedule.workers if w.id != shift.worker_id}

        self.title("Request Shift Swap")
        self.geometry("400x260")
        self.transient(parent)
        self.grab_set()

        main_frame = ctk.CTkFrame(self)
        main_frame.pack(fill="both", expand=True, padx=20, pady=20)

        summary = (f"{schedule.worker_name(shift.worker_id, 'Unknown')} - "
                   f"{schedule.department_name(shift.department_id, 'No department')}\n"
                   f"{shift.date} ({shift.start_time}-{shift.end_time})")
        ctk.CTkLabel(main_frame, text="Shift to swap:", font=ctk.CTkFont(weight="bold")).pack(anchor="w")
        ctk.CTkLabel(main_frame, text=summary, justify="left").pack(anchor="w", padx=10, pady=(0, 15))

        ctk.CTkLabel(main_frame, text="Offer to:").pack(anchor="w")
        names = list(self.worker_ids)
        self.target_var = ctk.StringVar(value=names[0] if names else "")
        ctk.CTkOptionMenu(main_frame, values=names or [""], variable=self.target_var, width=320).pack(pady=(0, 15))

        button_frame = ctk.CTkFrame(main_frame)
        button_frame.pack(fill="x")
        ctk.CTkButton(button_frame, text="Cancel", command=self.destroy, width=100).pack(side="right", padx=(10, 0))
        ctk.CTkButton(button_frame, text="Propose Swap", command=self._propose, width=120).pack(side="right")

        _center_on_parent(self, parent)

    def _propose(self):
        target_id = self.worker_ids.get(self.target_var.get())
        if not target_id:
            messagebox.showerror("Error", "No other worker to swap with", parent=self)
            return
        if self.callback and not self.callback(self.shift.id, target_id):
            return
        self.destroy()


class NotificationPanel(ctk.CTkToplevel):
    """Notification list with swap responses"""

    def __init__(self, parent, data_manager: DataManager, swap_workflow: SwapWorkflow,
                 on_change: Callable = None):
        super().__init__(parent)
        self.data_manager = data_manager
        self.swap_workflow = swap_workflow
        self.on_change = on_change

        self.title("Notifications")
        self.geometry("460x640")
        self.transient(parent)

        self.list_frame = ctk.CTkScrollableFrame(self)
        self.list_frame.pack(fill="both", expand=True, padx=10, pady=10)
        self.refresh()

    def refresh(self):
        for widget in self.list_frame.winfo_children():
            widget.destroy()

        notifications = self.data_manager.get_notifications()
        if not notifications:
            ctk.CTkLabel(self.list_frame, text="No notifications").pack(pady=20)
            return

        shifts = {s.id: s for s in self.data_manager.get_shifts()}
        for notification in notifications:
            self._create_notification_item(notification, shifts)

    def _create_notification_item(self, notification: Notification, shifts: Dict[str, Shift]):
        item = ctk.CTkFrame(self.list_frame, fg_color=None if notification.read else "#e8eefc")
        item.pack(fill="x", pady=3)

        ctk.CTkLabel(item, text=notification.message, wraplength=380, justify="left",
                     font=ctk.CTkFont(weight="normal" if notification.read else "bold")).pack(anchor="w", padx=8, pady=(6, 0))
        ctk.CTkLabel(item, text=notification.timestamp[:16].replace("T", " "),
                     text_color="gray").pack(anchor="w", padx=8)

        button_frame = ctk.CTkFrame(item, fg_color="transparent")
        button_frame.pack(fill="x", padx=8, pady=6)

        if isinstance(notification, SwapRequestNotification):
            shift = shifts.get(notification.metadata.shift_id)
            if shift and shift.swap_state == PendingSwap(notification.metadata.target_worker_id):
                ctk.CTkButton(button_frame, text="Approve", width=80, fg_color="green",
                              command=lambda: self._respond(notification.id, SwapDecision.APPROVED)).pack(side="left")
                ctk.CTkButton(button_frame, text="Reject", width=80, fg_color="red",
                              command=lambda: self._respond(notification.id, SwapDecision.REJECTED)).pack(side="left", padx=5)

        if not notification.read:
            ctk.CTkButton(button_frame, text="Mark read", width=80,
                          command=lambda: self._mark_read(notification.id)).pack(side="left", padx=5)
        ctk.CTkButton(button_frame, text="Delete", width=60, fg_color="gray",
                      command=lambda: self._delete(notification.id)).pack(side="right")

    def _run(self, action: Callable, error_title: str):
        try:
            action()
        except DataManagerError as e:
            logger.error(f"{error_title}: {e}")
            messagebox.showerror(error_title, str(e), parent=self)
        self.refresh()
        if self.on_change:
            self.on_change()

    def _respond(self, notification_id: str, decision: SwapDecision):
        self._run(lambda: self.swap_workflow.respond_to_swap(notification_id, decision), "Swap Response Failed")

    def _mark_read(self, notification_id: str):
        self._run(lambda: self.swap_workflow.mark_as_read([notification_id]), "Mark as Read Failed")

    def _delete(self, notification_id: str):
        self._run(lambda: self.swap_workflow.delete_notification(notification_id), "Delete Failed")


class EntityManagementWindow(ctk.CTkToplevel):
    """Workers, machines and departments management"""

    def __init__(self, parent, data_manager: DataManager, on_change: Callable = None):
        super().__init__(parent)
        self.data_manager = data_manager
        self.on_change = on_change

        self.title("Manage Data")
        self.geometry("520x560")
        self.transient(parent)

        self.sections = {
            "Workers": (data_manager.get_workers, data_manager.add_worker,
                        lambda item_id, name: data_manager.update_worker(item_id, name=name),
                        data_manager.delete_worker,
                        "Deleting a worker also deletes all of their shifts."),
            "Machines": (data_manager.get_machines, data_manager.add_machine,
                         data_manager.update_machine, data_manager.delete_machine,
                         "Shifts on this machine will keep running without one."),
            "Departments": (data_manager.get_departments, data_manager.add_department,
                            data_manager.update_department, data_manager.delete_department,
                            "Shifts in this department will have no department."),
        }

        self.tabview = ctk.CTkTabview(self)
        self.tabview.pack(fill="both", expand=True, padx=10, pady=10)
        self.list_frames = {}
        for title in self.sections:
            tab = self.tabview.add(title)
            self._create_tab(tab, title)
            self._load_items(title)

    def _create_tab(self, tab, title: str):
        add_frame = ctk.CTkFrame(tab)
        add_frame.pack(fill="x", pady=(0, 10))
        entry = ctk.CTkEntry(add_frame, placeholder_text="Name", width=300)
        entry.pack(side="left", padx=5, pady=5)
        ctk.CTkButton(add_frame, text="Add", width=80,
                      command=lambda: self._add_item(title, entry)).pack(side="left", padx=5)

        self.list_frames[title] = ctk.CTkScrollableFrame(tab)
        self.list_frames[title].pack(fill="both", expand=True)

    def _load_items(self, title: str):
        list_frame = self.list_frames[title]
        for widget in list_frame.winfo_children():
            widget.destroy()

        get_items = self.sections[title][0]
        for item in get_items():
            row = ctk.CTkFrame(list_frame)
            row.pack(fill="x", pady=2)
            name_entry = ctk.CTkEntry(row, width=260)
            name_entry.insert(0, item.name)
            name_entry.pack(side="left", padx=5, pady=3)
            ctk.CTkButton(row, text="Rename", width=70,
                          command=lambda i=item.id, e=name_entry: self._rename_item(title, i, e)).pack(side="left", padx=3)
            ctk.CTkButton(row, text="Delete", width=60, fg_color="red",
                          command=lambda i=item: self._delete_item(title, i)).pack(side="left", padx=3)

    def _changed(self, title: str):
        self._load_items(title)
        if self.on_change:
            self.on_change()

    def _add_item(self, title: str, entry):
        try:
            self.sections[title][1](entry.get())
        except DataManagerError as e:
            messagebox.showerror("Error", str(e), parent=self)
            return
        entry.delete(0, "end")
        self._changed(title)

    def _rename_item(self, title: str, item_id: str, entry):
        try:
            self.sections[title][2](item_id, entry.get())
        except DataManagerError as e:
            messagebox.showerror("Error", str(e), parent=self)
            return
        self._changed(title)

    def _delete_item(self, title: str, item):
        warning = self.sections[title][4]
        if not messagebox.askyesno("Confirm Delete", f"Delete '{item.name}'?\n\n{warning}", parent=self):
            return
        try:
            self.sections[title][3](item.id)
        except DataManagerError as e:
            messagebox.showerror("Error", str(e), parent=self)
            return
        self._changed(title)


class SuggestionDialog(ctk.CTkToplevel):
    """Collect shift requirements, solve them and apply the suggestions"""

    def __init__(self, parent, data_manager: DataManager, scheduler: ShiftScheduler,
                 initial_date: date, on_applied: Callable = None):
        super().__init__(parent)
        self.data_manager = data_manager
        self.scheduler = scheduler
        self.on_applied = on_applied
        self.requirements: List[ShiftRequirement] = []
        self.result: Optional[SuggestionResult] = None

        schedule = data_manager.load_all()
        self.department_ids = {d.name: d.id for d in schedule.departments}
        self.machine_ids = {m.name: m.id for m in schedule.machines}

        self.title("Suggest Shifts")
        self.geometry("560x640")
        self.transient(parent)
        self.grab_set()

        self._create_widgets(initial_date)
        _center_on_parent(self, parent)

    def _create_widgets(self, initial_date: date):
        form = ctk.CTkFrame(self)
        form.pack(fill="x", padx=10, pady=10)

        self.date_var = ctk.StringVar(value=initial_date.strftime(DATE_FORMAT))
        self.start_var = ctk.StringVar(value=self.data_manager.get_setting("defaultShiftStart", "08:00"))
        self.end_var = ctk.StringVar(value=self.data_manager.get_setting("defaultShiftEnd", "16:00"))
        self.count_var = ctk.StringVar(value="1")
        self.department_var = ctk.StringVar(value=next(iter(self.department_ids), NO_DEPARTMENT))
        self.machine_var = ctk.StringVar(value=NO_MACHINE)

        row1 = ctk.CTkFrame(form, fg_color="transparent")
        row1.pack(fill="x", pady=3)
        ctk.CTkEntry(row1, textvariable=self.date_var, width=110).pack(side="left", padx=3)
        ctk.CTkEntry(row1, textvariable=self.start_var, width=70).pack(side="left", padx=3)
        ctk.CTkEntry(row1, textvariable=self.end_var, width=70).pack(side="left", padx=3)
        ctk.CTkLabel(row1, text="Workers:").pack(side="left", padx=(10, 3))
        ctk.CTkEntry(row1, textvariable=self.count_var, width=40).pack(side="left")

        row2 = ctk.CTkFrame(form, fg_color="transparent")
        row2.pack(fill="x", pady=3)
        ctk.CTkOptionMenu(row2, values=[NO_DEPARTMENT] + list(self.department_ids),
                          variable=self.department_var, width=180).pack(side="left", padx=3)
        ctk.CTkOptionMenu(row2, values=[NO_MACHINE] + list(self.machine_ids),
                          variable=self.machine_var, width=180).pack(side="left", padx=3)
        ctk.CTkButton(row2, text="Add", width=70, command=self._add_requirement).pack(side="left", padx=3)

        self.requirements_box = ctk.CTkTextbox(self, height=140)
        self.requirements_box.pack(fill="x", padx=10)

        self.generate_button = ctk.CTkButton(self, text="Generate Suggestions", command=self._generate)
        self.generate_button.pack(pady=10)

        self.results_box = ctk.CTkTextbox(self, height=220)
        self.results_box.pack(fill="both", expand=True, padx=10)

        button_frame = ctk.CTkFrame(self)
        button_frame.pack(fill="x", padx=10, pady=10)
        ctk.CTkButton(button_frame, text="Cancel", command=self.destroy, width=100).pack(side="right", padx=(10, 0))
        self.apply_button = ctk.CTkButton(button_frame, text="Apply", command=self._apply,
                                          width=100, state="disabled")
        self.apply_button.pack(side="right")

    def _add_requirement(self):
        try:
            workers_needed = int(self.count_var.get())
        except ValueError:
            messagebox.showerror("Error", "Number of workers must be a whole number", parent=self)
            return
        requirement = ShiftRequirement(
            date=self.date_var.get().strip(),
            start_time=self.start_var.get().strip(),
            end_time=self.end_var.get().strip(),
            department_id=self.department_ids.get(self.department_var.get()),
            machine_id=self.machine_ids.get(self.machine_var.get()),
            workers_needed=workers_needed
        )
        try:
            requirement.interval()
        except DataManagerError as e:
            messagebox.showerror("Error", str(e), parent=self)
            return
        self.requirements.append(requirement)
        self.requirements_box.insert(
            "end",
            f"{requirement.date} {requirement.start_time}-{requirement.end_time} "
            f"{self.department_var.get()} / {self.machine_var.get()} x{workers_needed}\n"
        )

    def _generate(self):
        if not self.requirements:
            messagebox.showinfo("Suggest Shifts", "Add at least one requirement first", parent=self)
            return
        self.generate_button.configure(state="disabled", text="Generating...")

        # Run in background thread
        threading.Thread(target=self._run_generation, args=(list(self.requirements),), daemon=True).start()

    def _run_generation(self, requirements: List[ShiftRequirement]):
        """Worker thread body; every outcome is handed back to the Tk loop"""
        try:
            result = self.scheduler.suggest_shifts(requirements)
        except DataManagerError as e:
            logger.error(f"Suggestion generation failed: {e}")
            self.after(0, self._show_error, str(e))
        except Exception as e:
            logger.error(f"Unexpected error while generating suggestions: {e}", exc_info=True)
            self.after(0, self._show_error, f"Unexpected error: {e}")
        else:
            self.after(0, self._show_result, result)

    def _show_error(self, message: str):
        self.generate_button.configure(state="normal", text="Generate Suggestions")
        messagebox.showerror("Suggest Shifts", message, parent=self)

    def _show_result(self, result: SuggestionResult):
        self.result = result
        self.generate_button.configure(state="normal", text="Generate Suggestions")
        self.results_box.delete("1.0", "end")
        self.results_box.insert("end", f"{result.message}\n\n")
        for s in result.suggestions:
            machine = f" on {s.machine_name}" if s.machine_name else ""
            self.results_box.insert(
                "end", f"• {s.worker_name}: {s.department_name or NO_DEPARTMENT} "
                       f"{s.date} {s.start_time}-{s.end_time}{machine}\n"
            )
        for slot in result.unfilled:
            self.results_box.insert(
                "end", f"✗ {slot['date']} {slot['startTime']}-{slot['endTime']}: "
                       f"{slot['missing']} unfilled\n"
            )
        self.apply_button.configure(state="normal" if result.suggestions else "disabled")

    def _apply(self):
        if not self.result:
            return
        try:
            saved = self.scheduler.apply_suggestions(self.result.suggestions)
        except DataManagerError as e:
            messagebox.showerror("Apply Failed", str(e), parent=self)
            return
        if self.on_applied:
            self.on_applied(len(saved), len(self.result.suggestions))
        self.destroy()


class ShiftCard(ctk.CTkFrame):
    """Single shift inside a calendar day column"""

    def __init__(self, parent, shift: Shift, labels: Dict[str, str], main_window):
        super().__init__(parent, corner_radius=5, fg_color="#fff4d6" if shift.has_pending_swap else None)
        self.shift = shift
        self.main_window = main_window

        ctk.CTkLabel(self, text=labels["worker"], font=ctk.CTkFont(weight="bold")).pack(anchor="w", padx=5)
        ctk.CTkLabel(self, text=f"{shift.start_time}-{shift.end_time}").pack(anchor="w", padx=5)
        ctk.CTkLabel(self, text=labels["department"], font=ctk.CTkFont(size=11)).pack(anchor="w", padx=5)
        if labels["machine"]:
            ctk.CTkLabel(self, text=f"⚙ {labels['machine']}", font=ctk.CTkFont(size=11)).pack(anchor="w", padx=5)
        if shift.has_pending_swap:
            ctk.CTkLabel(self, text=f"⇄ to {labels['swap_target']}", text_color="orange",
                         font=ctk.CTkFont(size=11)).pack(anchor="w", padx=5)

        self.action_var = ctk.StringVar(value="Actions")
        ctk.CTkOptionMenu(
            self,
            values=["Edit", "Request swap", "Move to...", "Delete"],
            variable=self.action_var,
            command=self._on_action,
            width=110,
            height=22
        ).pack(anchor="w", padx=5, pady=4)

    def _on_action(self, choice: str):
        self.action_var.set("Actions")
        if choice == "Edit":
            self.main_window.edit_shift(self.shift)
        elif choice == "Request swap":
            self.main_window.request_swap(self.shift)
        elif choice == "Move to...":
            self.main_window.move_shift(self.shift)
        elif choice == "Delete":
            self.main_window.delete_shift(self.shift)


class CalendarView(ctk.CTkScrollableFrame):
    """Weekly calendar view with shift cards"""

    def __init__(self, parent, data_manager: DataManager, main_window):
        super().__init__(parent)
        self.data_manager = data_manager
        self.main_window = main_window
        self.week_start = week_start_for(date.today())

        self.title_label = None
        self.day_frames: Dict[str, ctk.CTkFrame] = {}
        self._create_calendar()

    def _create_calendar(self):
        header_frame = ctk.CTkFrame(self)
        header_frame.pack(fill="x", padx=10, pady=10)

        ctk.CTkButton(header_frame, text="<", width=30, command=self._prev_week).pack(side="left", padx=5)
        ctk.CTkButton(header_frame, text="Today", width=60, command=self._this_week).pack(side="left", padx=5)
        self.title_label = ctk.CTkLabel(header_frame, text="", font=ctk.CTkFont(size=20, weight="bold"))
        self.title_label.pack(side="left", expand=True)
        ctk.CTkButton(header_frame, text=">", width=30, command=self._next_week).pack(side="left", padx=5)

        self.grid_frame = ctk.CTkFrame(self)
        self.grid_frame.pack(fill="both", expand=True, padx=10, pady=10)
        for i in range(7):
            self.grid_frame.columnconfigure(i, weight=1, uniform="day")

    def set_week(self, week_start: date):
        self.week_start = week_start_for(week_start)
        self.data_manager.set_setting("lastViewedWeek", self.week_start.strftime(DATE_FORMAT))
        self.update_schedule_display()

    def _prev_week(self):
        self.set_week(self.week_start - timedelta(days=7))

    def _next_week(self):
        self.set_week(self.week_start + timedelta(days=7))

    def _this_week(self):
        self.set_week(date.today())

    def update_schedule_display(self):
        """Rebuild the day columns from the stored shifts"""
        week_end = self.week_start + timedelta(days=6)
        self.title_label.configure(
            text=f"{self.week_start.strftime('%d %b')} - {week_end.strftime('%d %b %Y')}"
        )
        for widget in self.grid_frame.winfo_children():
            widget.destroy()

        schedule = self.data_manager.load_all()
        week = self.data_manager.get_shifts_for_week(self.week_start)
        for column, (date_str, shifts) in enumerate(week.items()):
            day = self.week_start + timedelta(days=column)
            day_frame = ctk.CTkFrame(self.grid_frame)
            day_frame.grid(row=0, column=column, padx=2, pady=2, sticky="nsew")

            is_today = day == date.today()
            ctk.CTkLabel(
                day_frame,
                text=day.strftime("%a %d"),
                font=ctk.CTkFont(weight="bold"),
                text_color="#1f6aa5" if is_today else None
            ).pack(pady=4)
            ctk.CTkButton(day_frame, text="+", width=24, height=20,
                          command=lambda d=day: self.main_window.add_shift(d)).pack(pady=(0, 4))

            for shift in shifts:
                labels = {
                    "worker": schedule.worker_name(shift.worker_id, "Unknown"),
                    "department": schedule.department_name(shift.department_id, NO_DEPARTMENT),
                    "machine": schedule.machine_name(shift.machine_id),
                    "swap_target": schedule.worker_name(shift.swap_state.target_worker_id, "Unknown")
                    if shift.has_pending_swap else "",
                }
                ShiftCard(day_frame, shift, labels, self.main_window).pack(fill="x", padx=3, pady=3)
            self.day_frames[date_str] = day_frame


class MainWindow(ctk.CTk):
    """Main application window"""

    def __init__(self, data_manager: DataManager, scheduler: ShiftScheduler, swap_workflow: SwapWorkflow):
        super().__init__()

        self.title("Shift Planning System")
        self.geometry("1400x900")

        self.data_manager = data_manager
        self.scheduler = scheduler
        self.swap_workflow = swap_workflow
        self.export_manager: Optional[ExportManager] = None
        self.notification_panel: Optional[NotificationPanel] = None

        self._create_widgets()
        self._load_initial_data()

    def _create_widgets(self):
        control_frame = ctk.CTkFrame(self, height=60)
        control_frame.pack(fill="x", padx=10, pady=10)
        control_frame.pack_propagate(False)

        ctk.CTkButton(control_frame, text="Add Shift", command=lambda: self.add_shift(None),
                      width=120).pack(side="left", padx=10)
        ctk.CTkButton(control_frame, text="Suggest Shifts", command=self._suggest_shifts,
                      width=140).pack(side="left", padx=10)
        ctk.CTkButton(control_frame, text="Manage Data", command=self._manage_data,
                      width=130).pack(side="left", padx=10)
        ctk.CTkButton(control_frame, text="Export", command=self._export_schedule,
                      width=100).pack(side="left", padx=10)

        self.notifications_button = ctk.CTkButton(control_frame, text="Notifications",
                                                  command=self._show_notifications, width=150)
        self.notifications_button.pack(side="right", padx=10)

        self.calendar_view = CalendarView(self, self.data_manager, self)
        self.calendar_view.pack(fill="both", expand=True, padx=10, pady=(0, 10))

        self.status_var = ctk.StringVar(value="Ready")
        status_bar = ctk.CTkLabel(self, textvariable=self.status_var)
        status_bar.pack(side="bottom", fill="x", padx=10, pady=5)

    def _load_initial_data(self):
        """Load initial data and update displays"""
        last_week = self.data_manager.get_setting("lastViewedWeek")
        try:
            week_start = date.fromisoformat(last_week) if last_week else date.today()
        except ValueError:
            week_start = date.today()
        self.calendar_view.set_week(week_start)
        self.refresh()
        self.status_var.set("Data loaded successfully")

    def refresh(self):
        """Redraw calendar and unread badge"""
        self.calendar_view.update_schedule_display()
        unread = self.data_manager.get_unread_count()
        self.notifications_button.configure(text=f"Notifications ({unread})" if unread else "Notifications")
        if self.notification_panel is not None and self.notification_panel.winfo_exists():
            self.notification_panel.refresh()

    def _report_error(self, title: str, error: Exception):
        logger.error(f"{title}: {error}")
        self.status_var.set(f"Error: {error}")
        messagebox.showerror(title, str(error))

    # Shift actions
    def add_shift(self, day: Optional[date]):
        if not self.data_manager.get_workers():
            messagebox.showinfo("Add Shift", "Add at least one worker first.")
            return
        ShiftDialog(self, self.data_manager, self.scheduler,
                    initial_date=day or self.calendar_view.week_start, callback=self._save_new_shift)

    def _save_new_shift(self, values: Dict) -> bool:
        try:
            shift = self.data_manager.add_shift(**values)
        except DataManagerError as e:
            self._report_error("Save Shift Failed", e)
            return False
        self.status_var.set(f"Shift added on {shift.date}")
        self.refresh()
        return True

    def edit_shift(self, shift: Shift):
        def save(values: Dict) -> bool:
            try:
                self.data_manager.update_shift(
                    shift.id,
                    worker_id=values["worker_id"],
                    date=values["date_str"],
                    start_time=values["start_time"],
                    end_time=values["end_time"],
                    department_id=values["department_id"],
                    machine_id=values["machine_id"],
                    notes=values["notes"]
                )
            except DataManagerError as e:
                self._report_error("Save Shift Failed", e)
                return False
            self.status_var.set("Shift updated")
            self.refresh()
            return True

        ShiftDialog(self, self.data_manager, self.scheduler, shift=shift, callback=save)

    def move_shift(self, shift: Shift):
        dialog = ctk.CTkInputDialog(text="New date (YYYY-MM-DD):", title="Move Shift")
        new_date = dialog.get_input()
        if not new_date:
            return
        try:
            candidate = ShiftCandidate.from_shift(shift)
            candidate.date = new_date.strip()
            conflict = self.scheduler.check_conflict(candidate)
            if conflict.has_conflict and not messagebox.askyesno(
                    "Conflict", f"{conflict.message}\n\nMove the shift anyway?"):
                return
            self.data_manager.move_shift(shift.id, new_date.strip())
        except DataManagerError as e:
            self._report_error("Move Shift Failed", e)
            return
        self.status_var.set(f"Shift moved to {new_date.strip()}")
        self.refresh()

    def delete_shift(self, shift: Shift):
        if not messagebox.askyesno("Confirm Delete", "Delete this shift and its notifications?"):
            return
        try:
            self.data_manager.delete_shift(shift.id)
        except DataManagerError as e:
            self._report_error("Delete Shift Failed", e)
            return
        self.status_var.set("Shift deleted")
        self.refresh()

    def request_swap(self, shift: Shift):
        if shift.has_pending_swap:
            messagebox.showinfo("Swap Pending", "This shift already has a pending swap request.")
            return
        SwapRequestDialog(self, self.data_manager, shift, callback=self._propose_swap)

    def _propose_swap(self, shift_id: str, target_worker_id: str) -> bool:
        try:
            proposal = self.swap_workflow.propose_swap(shift_id, target_worker_id)
        except DataManagerError as e:
            self._report_error("Swap Request Failed", e)
            return False
        self.status_var.set(proposal.notification.message)
        self.refresh()
        return True

    # Other windows
    def _show_notifications(self):
        if self.notification_panel is not None and self.notification_panel.winfo_exists():
            self.notification_panel.focus()
            return
        self.notification_panel = NotificationPanel(self, self.data_manager, self.swap_workflow,
                                                    on_change=self.refresh)

    def _manage_data(self):
        EntityManagementWindow(self, self.data_manager, on_change=self.refresh)

    def _suggest_shifts(self):
        def applied(saved: int, total: int):
            self.status_var.set(f"Applied {saved} of {total} suggested shifts")
            self.refresh()

        SuggestionDialog(self, self.data_manager, self.scheduler,
                         self.calendar_view.week_start, on_applied=applied)

    def _export_schedule(self):
        """Export current week to PDF, Excel, or CSV."""
        export_manager = self.export_manager or ExportManager(self.data_manager)
        week_start = self.calendar_view.week_start

        output_path = filedialog.asksaveasfilename(
            initialfile=f"shift_schedule_week_{week_start.strftime('%Y%m%d')}",
            defaultextension=".pdf",
            filetypes=[
                ("PDF files", "*.pdf"),
                ("Excel files", "*.xlsx"),
                ("CSV files", "*.csv"),
                ("All files", "*.*")
            ],
            title="Export Schedule"
        )

        if not output_path:
            return  # User cancelled

        file_extension = output_path.split('.')[-1].lower()
        if file_extension == "xlsx":
            format_type = "excel"
        elif file_extension == "csv":
            format_type = "csv"
        else:
            format_type = "pdf"

        if export_manager.export_week(week_start, format_type, output_path):
            messagebox.showinfo("Export Successful", f"Schedule exported successfully to:\n{output_path}")
        else:
            messagebox.showerror("Export Failed", "Failed to export schedule. Please check the file path and try again.")
