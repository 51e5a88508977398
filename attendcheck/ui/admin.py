import logging

import customtkinter as ctk

from .. import form_options
from ..camera import Camera, encode_jpeg, frame_to_image
from ..config import Config
from ..errors import AttendCheckError, CameraError
from ..forms import StudentRegistrationForm, first_error
from ..messages import ERROR, INFO, SUCCESS, Message
from ..records import register_student
from .directory import StudentDirectoryPanel
from .ui_utils import (
    bring_window_to_front,
    danger_button,
    labeled_entry,
    option_menu,
    primary_button,
    show_image,
    show_message,
)

logger = logging.getLogger(__name__)


class AdminView(ctk.CTkFrame):
    def __init__(self, master, app):
        user = app.context.session.require_role('admin')
        super().__init__(master, fg_color='transparent')
        self.context = app.context
        self.user = user

        header = ctk.CTkFrame(self, fg_color='transparent')
        header.pack(fill='x', padx=16, pady=(12, 0))
        ctk.CTkLabel(header, text='Admin Dashboard', font=('Arial', 22, 'bold')).pack(side='left')
        danger_button(header, 'Logout', app.logout).pack(side='right')

        tabs = ctk.CTkTabview(self)
        tabs.pack(fill='both', expand=True, padx=12, pady=12)
        tabs.add('Students')
        tabs.add('Register Student')
        self.directory_panel = StudentDirectoryPanel(tabs.tab('Students'), self.context, editable=True)
        self.directory_panel.pack(fill='both', expand=True)
        self.registration_panel = RegistrationPanel(tabs.tab('Register Student'), self.context,
                                                    on_registered=self.directory_panel.reload)
        self.registration_panel.pack(fill='both', expand=True)

    def teardown(self):
        self.directory_panel.teardown()


class RegistrationPanel(ctk.CTkScrollableFrame):
    def __init__(self, master, context, on_registered=None):
        super().__init__(master)
        self.context = context
        self.on_registered = on_registered
        self.entries = {
            'roll_number': labeled_entry(self, 'Roll Number'),
            'name': labeled_entry(self, 'Student Name'),
            'email': labeled_entry(self, 'Email'),
            'phone': labeled_entry(self, 'Phone Number'),
        }
        self.year_menu, self.year_var = option_menu(self, 'Year', form_options.YEARS, command=self._year_changed)
        self.department_menu, self.department_var = option_menu(self, 'Department', form_options.DEPARTMENTS,
                                                                command=self._department_changed)
        self.semester_menu, self.semester_var = option_menu(self, 'Semester', [])
        self.section_menu, self.section_var = option_menu(self, 'Section', [])
        self.message_label = ctk.CTkLabel(self, text='', wraplength=420)
        self.message_label.pack(anchor='w', padx=20, pady=6)
        self.next_button = primary_button(self, 'Next: Capture Face', self._next)
        self.next_button.pack(anchor='w', padx=20, pady=12)
        self.form = None

    def _year_changed(self, year):
        self.semester_var.set('')
        self.section_var.set('')
        self.semester_menu.configure(values=form_options.semesters_for(year) or [''])
        self._department_changed(self.department_var.get())

    def _department_changed(self, department):
        self.section_var.set('')
        self.section_menu.configure(values=form_options.sections_for(self.year_var.get(), department) or [''])

    def _data(self):
        data = {name: entry.get().strip() for name, entry in self.entries.items()}
        data.update(
            year=self.year_var.get(),
            semester=self.semester_var.get(),
            department=self.department_var.get(),
            section=self.section_var.get(),
        )
        return data

    def _next(self):
        form = StudentRegistrationForm(data=self._data())
        if not form.validate():
            show_message(self.message_label, Message(first_error(form), ERROR))
            return
        self.form = form
        show_message(self.message_label, Message('Capture 3 pictures of the student\'s face.', INFO))
        FaceCaptureDialog(self, self._submit)

    def _submit(self, images):
        details = self.form.to_payload(Config.DEFAULT_STUDENT_PASSWORD)
        self.next_button.configure(state='disabled')
        show_message(self.message_label, Message('Registering student...', INFO))
        self.context.dispatcher.submit(lambda: register_student(self.context.api, details, images),
                                       self._registered, self._failed)

    def _registered(self, message):
        if not self.winfo_exists():
            return
        self.next_button.configure(state='normal')
        show_message(self.message_label, Message(message, SUCCESS))
        for entry in self.entries.values():
            entry.delete(0, 'end')
        for variable in (self.year_var, self.department_var, self.semester_var, self.section_var):
            variable.set('')
        self.form = None
        if self.on_registered:
            self.on_registered()

    def _failed(self, exc):
        if not self.winfo_exists():
            return
        self.next_button.configure(state='normal')
        if isinstance(exc, AttendCheckError):
            text = exc.message
        else:
            logger.error('Error during registration', exc_info=exc)
            text = 'Network error. Could not connect to one or both backend servers.'
        show_message(self.message_label, Message(text, ERROR))


class FaceCaptureDialog(ctk.CTkToplevel):
    """Live preview with a shutter button; returns the captured JPEG stills."""

    PREVIEW_INTERVAL_MS = 30

    def __init__(self, parent, on_done, count=None):
        super().__init__(parent)
        self.on_done = on_done
        self.count = count or Config.MIN_FACE_IMAGES
        self.images = []
        self.camera = Camera()
        self.current_frame = None
        self._job = None
        self._closed = False
        self.title('Capture Student Face')
        self.geometry('640x620')
        self.protocol('WM_DELETE_WINDOW', self.close)

        self.video_label = ctk.CTkLabel(self, text='Initializing camera...', width=600, height=450, fg_color='#000000')
        self.video_label.pack(padx=20, pady=(20, 10))
        self.status_label = ctk.CTkLabel(self, text='')
        self.status_label.pack()
        buttons = ctk.CTkFrame(self, fg_color='transparent')
        buttons.pack(pady=10)
        self.shutter_button = primary_button(buttons, '', self._take_picture)
        self.shutter_button.pack(side='left', padx=6)
        ctk.CTkButton(buttons, text='Retake All', command=self._retake).pack(side='left', padx=6)
        self.done_button = ctk.CTkButton(buttons, text='Register', state='disabled', command=self._finish)
        self.done_button.pack(side='left', padx=6)
        self._update_labels()
        bring_window_to_front(self)

        try:
            self.camera.open()
        except CameraError as exc:
            self.status_label.configure(text='Failed to access camera. ' + exc.message)
            self.shutter_button.configure(state='disabled')
            return
        self._update_preview()

    def _update_labels(self):
        taken = len(self.images)
        if taken < self.count:
            self.shutter_button.configure(text=f'Take picture {taken + 1} of {self.count}', state='normal')
            self.done_button.configure(state='disabled')
        else:
            self.shutter_button.configure(text='All pictures taken', state='disabled')
            self.done_button.configure(state='normal')
        self.status_label.configure(text=f'{taken} of {self.count} pictures captured')

    def _update_preview(self):
        self._job = None
        if self._closed:
            return
        try:
            self.current_frame = self.camera.read()
            show_image(self.video_label, frame_to_image(self.current_frame, (600, 450)))
        except CameraError as exc:
            self.status_label.configure(text=exc.message)
        self._job = self.after(self.PREVIEW_INTERVAL_MS, self._update_preview)

    def _take_picture(self):
        if self.current_frame is None or len(self.images) >= self.count:
            return
        try:
            self.images.append(encode_jpeg(self.current_frame))
        except CameraError as exc:
            self.status_label.configure(text=exc.message)
            return
        self._update_labels()

    def _retake(self):
        self.images = []
        self._update_labels()

    def _finish(self):
        images = list(self.images)
        self.close()
        self.on_done(images)

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._job is not None:
            self.after_cancel(self._job)
        self.camera.release()
        self.destroy()
