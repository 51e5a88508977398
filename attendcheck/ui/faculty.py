import logging
from tkinter import messagebox

import customtkinter as ctk

from .. import form_options
from ..countdown import format_remaining
from ..history import SessionHistory
from ..messages import ERROR, Message
from ..producer import PublisherState, QRSessionPublisher
from .directory import StudentDirectoryPanel
from .ui_utils import (
    clear_frame,
    danger_button,
    option_menu,
    primary_button,
    render_steps,
    show_image,
    show_message,
)

logger = logging.getLogger(__name__)

PERIOD_FIELDS = ('year', 'semester', 'department', 'section', 'subject', 'period', 'block', 'room')

# Changing a field clears the selections that depend on it
DEPENDENTS = {
    'year': ('semester', 'department', 'section', 'subject', 'period'),
    'semester': ('department', 'section', 'subject', 'period'),
    'department': ('section', 'subject', 'period'),
    'block': ('room',),
}


def period_options(values):
    """Option lists for every period field given the current selections."""
    year, semester, department = values.get('year'), values.get('semester'), values.get('department')
    return {
        'year': form_options.YEARS,
        'semester': form_options.semesters_for(year),
        'department': form_options.DEPARTMENTS,
        'section': form_options.sections_for(year, department),
        'subject': form_options.subjects_for(year, semester, department),
        'period': form_options.PERIODS,
        'block': form_options.blocks(),
        'room': form_options.rooms_for(values.get('block')),
    }


class FacultyView(ctk.CTkFrame):
    def __init__(self, master, app):
        user = app.context.session.require_role('faculty')
        super().__init__(master, fg_color='transparent')
        self.app = app
        self.context = app.context
        self.user = user

        header = ctk.CTkFrame(self, fg_color='transparent')
        header.pack(fill='x', padx=16, pady=(12, 0))
        ctk.CTkLabel(header, text=f'Welcome, {self.user.name}', font=('Arial', 22, 'bold')).pack(side='left')
        danger_button(header, 'Logout', app.logout).pack(side='right')

        tabs = ctk.CTkTabview(self)
        tabs.pack(fill='both', expand=True, padx=12, pady=12)
        for name in ('Generate QR', 'History', 'Students'):
            tabs.add(name)
        self.generate_panel = GenerateQRPanel(tabs.tab('Generate QR'), app, self.user)
        self.generate_panel.pack(fill='both', expand=True)
        self.history_panel = HistoryPanel(tabs.tab('History'), self.context, self.user, app)
        self.history_panel.pack(fill='both', expand=True)
        self.directory_panel = StudentDirectoryPanel(tabs.tab('Students'), self.context, editable=False)
        self.directory_panel.pack(fill='both', expand=True)

    def teardown(self):
        self.generate_panel.teardown()
        self.history_panel.teardown()
        self.directory_panel.teardown()


class GenerateQRPanel(ctk.CTkFrame):
    def __init__(self, master, app, user):
        super().__init__(master, fg_color='transparent')
        self.publisher = QRSessionPublisher(app.context.api, app, faculty_name=user.name,
                                            dispatcher=app.context.dispatcher, on_change=self.render)

        form_column = ctk.CTkScrollableFrame(self, width=300)
        form_column.pack(side='left', fill='y', padx=(0, 10))
        ctk.CTkLabel(form_column, text='Class Details', font=('Arial', 18, 'bold')).pack(anchor='w', padx=20, pady=(6, 4))
        self.menus = {}
        self.variables = {}
        for name in PERIOD_FIELDS:
            menu, variable = option_menu(form_column, name.capitalize(), [],
                                         command=lambda _value, field=name: self._field_changed(field))
            self.menus[name] = menu
            self.variables[name] = variable
        primary_button(form_column, 'Generate QR Code', self._generate).pack(padx=20, pady=16)
        self._refresh_options()

        display = ctk.CTkFrame(self)
        display.pack(side='left', fill='both', expand=True)
        self.steps_frame = ctk.CTkFrame(display, fg_color='transparent')
        self.steps_frame.pack(pady=(12, 6))
        self.details_label = ctk.CTkLabel(display, text='', font=('Arial', 14), justify='left')
        self.details_label.pack(pady=4)
        self.qr_label = ctk.CTkLabel(display, text='Fetching period details...', width=300, height=300)
        self.qr_label.pack(pady=6)
        self.countdown_label = ctk.CTkLabel(display, text='', font=('Arial', 20, 'bold'))
        self.countdown_label.pack()
        self.link_label = ctk.CTkLabel(display, text='', wraplength=460)
        self.link_label.pack(pady=4)
        self.error_label = ctk.CTkLabel(display, text='', wraplength=460)
        self.error_label.pack(pady=4)
        self.feedback_label = ctk.CTkLabel(display, text='', wraplength=460)
        self.feedback_label.pack(pady=4)
        buttons = ctk.CTkFrame(display, fg_color='transparent')
        buttons.pack(pady=8)
        self.copy_button = ctk.CTkButton(buttons, text='Copy Link', command=self._copy)
        self.copy_button.pack(side='left', padx=6)
        ctk.CTkButton(buttons, text='Refresh', command=self.publisher.refresh).pack(side='left', padx=6)

        self.publisher.refresh()

    def _values(self):
        return {name: variable.get() for name, variable in self.variables.items()}

    def _field_changed(self, field):
        for dependent in DEPENDENTS.get(field, ()):
            self.variables[dependent].set('')
        self._refresh_options()

    def _refresh_options(self):
        for name, values in period_options(self._values()).items():
            self.menus[name].configure(values=values or [''])

    def _generate(self):
        metadata = self.publisher.prepare(self._values())
        if metadata is None:
            return
        summary = '\n'.join(f'{name.capitalize()}: {value}' for name, value in metadata.to_payload().items())
        if messagebox.askyesno('Confirm QR Generation', f'Generate a QR code for this class?\n\n{summary}', parent=self):
            self.publisher.confirm()
        else:
            self.publisher.cancel_confirmation()

    def _copy(self):
        def to_clipboard(text):
            self.clipboard_clear()
            self.clipboard_append(text)
        self.publisher.copy_link(clipboard=to_clipboard)

    def render(self):
        publisher = self.publisher
        render_steps(self.steps_frame, publisher.steps)
        show_message(self.feedback_label, publisher.feedback.transient)
        show_message(self.error_label, Message(publisher.error, ERROR) if publisher.error else None)

        if publisher.state == PublisherState.LOADING and publisher.period is None:
            self.qr_label.configure(text='Fetching period details...', image=None)
            return
        period = publisher.period
        if period is None:
            self.qr_label.configure(text='No QR code yet', image=None)
            self.qr_label.image = None
            self.details_label.configure(text='')
            self.countdown_label.configure(text='')
            self.link_label.configure(text='')
            return

        meta = period.metadata
        self.details_label.configure(text=(
            f'{meta.subject}  |  Year {meta.year} ({meta.semester})  |  {meta.department}-{meta.section}\n'
            f'{meta.block}, Room {meta.room}  |  Period {meta.period}'
        ))
        if publisher.qr_image is not None:
            show_image(self.qr_label, publisher.qr_image, (280, 280))
        self.link_label.configure(text=publisher.share_link or '')
        if publisher.expired:
            self.countdown_label.configure(text='Expired', text_color='#c82333')
            self.copy_button.configure(state='disabled')
        else:
            self.countdown_label.configure(text=f'Expires in {format_remaining(publisher.remaining)}',
                                           text_color='#228B22')
            self.copy_button.configure(state='normal')

    def teardown(self):
        self.publisher.teardown()


class HistoryPanel(ctk.CTkFrame):
    def __init__(self, master, context, user, scheduler):
        super().__init__(master, fg_color='transparent')
        self.history = SessionHistory(context.api, user.name, scheduler, dispatcher=context.dispatcher,
                                      on_change=self.render)
        top = ctk.CTkFrame(self, fg_color='transparent')
        top.pack(fill='x', padx=10, pady=6)
        self.status_label = ctk.CTkLabel(top, text='')
        self.status_label.pack(side='left')
        ctk.CTkButton(top, text='Refresh', width=90, command=self.history.refresh).pack(side='right')
        self.table = ctk.CTkScrollableFrame(self)
        self.table.pack(fill='both', expand=True, padx=10, pady=(0, 10))
        self.history.refresh()

    def render(self):
        if not self.winfo_exists():
            return
        history = self.history
        clear_frame(self.table)
        status = history.status_message
        if status is not None:
            show_message(self.status_label, status)
        elif history.loading:
            self.status_label.configure(text='Loading history...')
        else:
            self.status_label.configure(text=f'{len(history.entries)} session(s)')

        titles = ('Date', 'Subject', 'Class', 'Room', 'Period', 'Status')
        for column, title in enumerate(titles):
            ctk.CTkLabel(self.table, text=title, font=('Arial', 13, 'bold')).grid(row=0, column=column, padx=6, sticky='w')
        for row, entry in enumerate(history.entries, start=1):
            meta = entry.metadata
            cells = (
                entry.display_time,
                meta.subject,
                f'{meta.year}/{meta.semester} {meta.department}-{meta.section}',
                f'{meta.block} {meta.room}',
                meta.period,
                entry.status,
            )
            for column, text in enumerate(cells):
                ctk.CTkLabel(self.table, text=text).grid(row=row, column=column, padx=6, sticky='w')
            danger_button(self.table, 'Delete', lambda token=entry.token: self._delete(token), width=70) \
                .grid(row=row, column=len(cells), padx=6)

    def _delete(self, token):
        self.history.delete(token, confirm=lambda: messagebox.askyesno(
            'Confirm Deletion',
            'Are you sure you want to delete this history entry? This action cannot be undone.',
            parent=self,
        ))

    def teardown(self):
        self.history.teardown()
