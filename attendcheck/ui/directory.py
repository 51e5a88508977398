import logging
from tkinter import messagebox

import customtkinter as ctk

from .. import records
from ..errors import AttendCheckError
from ..messages import ERROR, SUCCESS, Message
from .ui_utils import bring_window_to_front, clear_frame, danger_button, labeled_entry, show_message

logger = logging.getLogger(__name__)

COLUMNS = ('rollNumber', 'name', 'department', 'year', 'semester', 'section', 'phone')
EDITABLE_FIELDS = ('name', 'email', 'phone', 'department', 'year', 'semester', 'section')


class StudentDirectoryPanel(ctk.CTkFrame):
    """Searchable student list with cascading filters."""

    def __init__(self, master, context, editable=False):
        super().__init__(master, fg_color='transparent')
        self.context = context
        self.editable = editable
        self.students = []
        self._torn_down = False

        filters = ctk.CTkFrame(self)
        filters.pack(fill='x', padx=10, pady=(10, 6))
        self.search_var = ctk.StringVar(value='')
        search = ctk.CTkEntry(filters, width=240, textvariable=self.search_var,
                              placeholder_text='Search by name, roll number, email...')
        search.pack(side='left', padx=6, pady=6)
        search.bind('<KeyRelease>', lambda _event=None: self.render())

        self.department_var = ctk.StringVar(value=records.ALL)
        self.year_var = ctk.StringVar(value=records.ALL)
        self.semester_var = ctk.StringVar(value=records.ALL)
        self.section_var = ctk.StringVar(value=records.ALL)
        self.department_menu = ctk.CTkOptionMenu(filters, values=records.department_filter_options(),
                                                 variable=self.department_var, command=self._department_changed, width=110)
        self.year_menu = ctk.CTkOptionMenu(filters, values=records.year_filter_options(),
                                           variable=self.year_var, command=self._year_changed, width=90)
        self.semester_menu = ctk.CTkOptionMenu(filters, values=records.semester_filter_options(),
                                               variable=self.semester_var, command=lambda _v: self.render(), width=90)
        self.section_menu = ctk.CTkOptionMenu(filters, values=records.section_filter_options(),
                                              variable=self.section_var, command=lambda _v: self.render(), width=90)
        for menu in (self.department_menu, self.year_menu, self.semester_menu, self.section_menu):
            menu.pack(side='left', padx=4)
        ctk.CTkButton(filters, text='Reload', width=80, command=self.reload).pack(side='right', padx=6)

        self.status_label = ctk.CTkLabel(self, text='')
        self.status_label.pack(anchor='w', padx=14)
        self.table = ctk.CTkScrollableFrame(self)
        self.table.pack(fill='both', expand=True, padx=10, pady=(4, 10))
        self.reload()

    def _department_changed(self, _value):
        self.section_var.set(records.ALL)
        self.section_menu.configure(values=records.section_filter_options(self.year_var.get(), self.department_var.get()))
        self.render()

    def _year_changed(self, _value):
        self.semester_var.set(records.ALL)
        self.section_var.set(records.ALL)
        self.semester_menu.configure(values=records.semester_filter_options(self.year_var.get()))
        self.section_menu.configure(values=records.section_filter_options(self.year_var.get(), self.department_var.get()))
        self.render()

    def reload(self):
        if self._torn_down:
            return
        self.status_label.configure(text='Loading students...')
        self.context.dispatcher.submit(self.context.api.students, self._loaded, self._failed)

    def _loaded(self, items):
        if self._torn_down or not self.winfo_exists():
            return
        self.students = [records.Student.from_payload(item) for item in items if isinstance(item, dict)]
        self.render()

    def _failed(self, exc):
        if self._torn_down or not self.winfo_exists():
            return
        if not isinstance(exc, AttendCheckError):
            logger.error('Error fetching students', exc_info=exc)
        show_message(self.status_label, Message('Failed to load students. Please try again.', ERROR))

    def visible_students(self):
        return records.filter_students(
            self.students,
            search=self.search_var.get(),
            department=self.department_var.get(),
            year=self.year_var.get(),
            semester=self.semester_var.get(),
            section=self.section_var.get(),
        )

    def render(self):
        clear_frame(self.table)
        rows = self.visible_students()
        if not rows:
            self.status_label.configure(text='No students registered yet or found matching your search.')
            return
        self.status_label.configure(text=f'{len(rows)} student(s)')
        for column, title in enumerate(('Roll No', 'Name', 'Dept', 'Year', 'Sem', 'Sec', 'Phone')):
            ctk.CTkLabel(self.table, text=title, font=('Arial', 13, 'bold')).grid(row=0, column=column, padx=6, sticky='w')
        for row, student in enumerate(rows, start=1):
            for column, name in enumerate(COLUMNS):
                ctk.CTkLabel(self.table, text=getattr(student, name)).grid(row=row, column=column, padx=6, sticky='w')
            actions = ctk.CTkFrame(self.table, fg_color='transparent')
            actions.grid(row=row, column=len(COLUMNS), padx=6, sticky='e')
            ctk.CTkButton(actions, text='Report', width=70,
                          command=lambda s=student: StudentReportDialog(self, self.context, s)).pack(side='left', padx=2)
            if self.editable:
                ctk.CTkButton(actions, text='Edit', width=60,
                              command=lambda s=student: StudentEditDialog(self, self.context, s, self.reload)).pack(side='left', padx=2)
                danger_button(actions, 'Delete', lambda s=student: self._delete(s), width=70).pack(side='left', padx=2)

    def teardown(self):
        self._torn_down = True

    def _delete(self, student):
        if not messagebox.askyesno('Confirm Deletion', f'Delete {student.name} ({student.rollNumber})? This cannot be undone.', parent=self):
            return
        self.context.dispatcher.submit(lambda: self.context.api.delete_student(student.id),
                                       lambda _payload: self._deleted(student), self._delete_failed)

    def _deleted(self, student):
        if self._torn_down or not self.winfo_exists():
            return
        show_message(self.status_label, Message(f'Deleted {student.rollNumber}.', SUCCESS))
        self.reload()

    def _delete_failed(self, exc):
        if self._torn_down or not self.winfo_exists():
            return
        show_message(self.status_label, Message(getattr(exc, 'message', None) or 'Failed to delete student.', ERROR))


class StudentEditDialog(ctk.CTkToplevel):
    def __init__(self, parent, context, student, on_saved):
        super().__init__(parent)
        self.context = context
        self.student = student
        self.on_saved = on_saved
        self.title(f'Edit {student.rollNumber}')
        self.geometry('420x620')
        self.entries = {}
        for name in EDITABLE_FIELDS:
            entry = labeled_entry(self, name.capitalize())
            entry.insert(0, getattr(student, name))
            self.entries[name] = entry
        self.message_label = ctk.CTkLabel(self, text='')
        self.message_label.pack(pady=6)
        ctk.CTkButton(self, text='Save', command=self._save).pack(pady=10)
        bring_window_to_front(self)

    def _save(self):
        changes = self.student.changes_from({name: entry.get().strip() for name, entry in self.entries.items()})
        if not changes:
            self.destroy()
            return
        self.context.dispatcher.submit(lambda: self.context.api.update_student(self.student.id, changes),
                                       self._saved, self._failed)

    def _saved(self, _payload):
        if not self.winfo_exists():
            return
        self.destroy()
        self.on_saved()

    def _failed(self, exc):
        if not self.winfo_exists():
            return
        show_message(self.message_label, Message(getattr(exc, 'message', None) or 'Failed to update student.', ERROR))


class StudentReportDialog(ctk.CTkToplevel):
    def __init__(self, parent, context, student):
        super().__init__(parent)
        self.title(f'Attendance: {student.name}')
        self.geometry('480x520')
        self.body = ctk.CTkScrollableFrame(self)
        self.body.pack(fill='both', expand=True, padx=10, pady=10)
        ctk.CTkLabel(self.body, text='Loading attendance...').pack()
        context.dispatcher.submit(lambda: context.api.student_report(student.rollNumber), self._loaded, self._failed)
        bring_window_to_front(self)

    def _loaded(self, payload):
        if not self.winfo_exists():
            return
        data = payload.get('attendance', payload) if isinstance(payload, dict) else {}
        render_summary(self.body, records.AttendanceSummary.from_payload(data))

    def _failed(self, exc):
        if not self.winfo_exists():
            return
        clear_frame(self.body)
        ctk.CTkLabel(self.body, text=getattr(exc, 'message', None) or 'Failed to load attendance.').pack()


def render_summary(frame, summary):
    clear_frame(frame)
    if not summary.has_data and not summary.total_classes:
        ctk.CTkLabel(frame, text='No attendance recorded yet.').pack(pady=10)
        return
    ctk.CTkLabel(frame, text=f'Overall attendance: {summary.overall_percentage}%',
                 font=('Arial', 18, 'bold')).pack(anchor='w', pady=(4, 2))
    ctk.CTkLabel(frame, text=f'Classes: {summary.total_classes}   Present: {summary.present_count}   '
                             f'Absent: {summary.absent_count}').pack(anchor='w')
    if summary.subjects:
        ctk.CTkLabel(frame, text='By subject', font=('Arial', 15, 'bold')).pack(anchor='w', pady=(10, 2))
        for stat in summary.subjects:
            ctk.CTkLabel(frame, text=f'{stat.subject}: {stat.percentage}%').pack(anchor='w')
    month = summary.month()
    ctk.CTkLabel(frame, text=f"Month {month['month']}: {month['presentPeriods']}/{month['totalPeriods']} "
                             f"periods ({month['percentage']}%)").pack(anchor='w', pady=(10, 0))
    week = summary.week()
    ctk.CTkLabel(frame, text=f"Week {week['weekName']}: {len(week['dates'])} day(s) recorded").pack(anchor='w')
