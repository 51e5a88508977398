import logging

import customtkinter as ctk

from ..camera import Camera, frame_to_image
from ..countdown import format_remaining
from ..errors import AttendCheckError, CameraError, SessionError
from ..messages import ERROR, Message
from ..period import extract_token
from ..qr import scan_token
from ..records import AttendanceSummary
from ..verification import AttendanceVerifier, VerifierState
from .directory import render_summary
from .ui_utils import (
    bring_window_to_front,
    clear_frame,
    danger_button,
    primary_button,
    render_steps,
    show_image,
    show_message,
)

logger = logging.getLogger(__name__)

PREVIEW_INTERVAL_MS = 200

STATE_TEXT = {
    VerifierState.LOADING: 'Loading attendance details...',
    VerifierState.AWAITING_LOCATION: 'Step 1: verify that you are in the classroom.',
    VerifierState.CAPTURING: 'Step 2: look at the camera until your face is recognized.',
    VerifierState.SUCCESS: 'Attendance marked successfully!',
    VerifierState.EXPIRED: 'This session has ended.',
    VerifierState.INVALID: 'This attendance link cannot be used.',
}


class StudentView(ctk.CTkFrame):
    def __init__(self, master, app, token=None):
        user = app.context.session.require_role('student')
        super().__init__(master, fg_color='transparent')
        self.app = app
        self.context = app.context
        self.user = user

        header = ctk.CTkFrame(self, fg_color='transparent')
        header.pack(fill='x', padx=16, pady=(12, 0))
        ctk.CTkLabel(header, text=f'Welcome, {self.user.name}', font=('Arial', 22, 'bold')).pack(side='left')
        danger_button(header, 'Logout', app.logout).pack(side='right')

        self.tabs = ctk.CTkTabview(self)
        self.tabs.pack(fill='both', expand=True, padx=12, pady=12)
        self.tabs.add('Dashboard')
        self.tabs.add('Verify Attendance')
        self.dashboard_panel = DashboardPanel(self.tabs.tab('Dashboard'), self.context)
        self.dashboard_panel.pack(fill='both', expand=True)
        self.verify_panel = VerifyPanel(self.tabs.tab('Verify Attendance'), app)
        self.verify_panel.pack(fill='both', expand=True)

        if token:
            self.tabs.set('Verify Attendance')
            self.verify_panel.open_token(token)

    def teardown(self):
        self.verify_panel.teardown()


class DashboardPanel(ctk.CTkFrame):
    def __init__(self, master, context):
        super().__init__(master, fg_color='transparent')
        self.context = context
        self.body = ctk.CTkScrollableFrame(self)
        self.body.pack(fill='both', expand=True, padx=10, pady=10)
        ctk.CTkLabel(self.body, text='Loading your attendance...').pack()
        ctk.CTkButton(self, text='Refresh', width=90, command=self.reload).pack(pady=(0, 10))
        self.reload()

    def reload(self):
        self.context.dispatcher.submit(self.context.api.student_dashboard, self._loaded, self._failed)

    def _loaded(self, payload):
        if not self.winfo_exists():
            return
        payload = payload if isinstance(payload, dict) else {}
        render_summary(self.body, AttendanceSummary.from_payload(payload.get('attendance')))

    def _failed(self, exc):
        if not self.winfo_exists():
            return
        if not isinstance(exc, AttendCheckError):
            logger.error('Error fetching dashboard', exc_info=exc)
        clear_frame(self.body)
        ctk.CTkLabel(self.body, text='Failed to load user data and attendance. Please try again.').pack()


class VerifyPanel(ctk.CTkFrame):
    def __init__(self, master, app):
        super().__init__(master, fg_color='transparent')
        self.app = app
        self.context = app.context
        self.verifier = None
        self._preview_job = None

        entry_row = ctk.CTkFrame(self, fg_color='transparent')
        entry_row.pack(fill='x', padx=10, pady=(6, 4))
        self.link_entry = ctk.CTkEntry(entry_row, width=460, placeholder_text='Paste the attendance link or token')
        self.link_entry.pack(side='left', padx=(0, 6))
        ctk.CTkButton(entry_row, text='Open', width=80, command=self._open_entered).pack(side='left', padx=4)
        ctk.CTkButton(entry_row, text='Scan QR', width=100, command=self._scan).pack(side='left', padx=4)

        self.steps_frame = ctk.CTkFrame(self, fg_color='transparent')
        self.steps_frame.pack(pady=(6, 4))
        self.state_label = ctk.CTkLabel(self, text='Open an attendance link to begin.', font=('Arial', 16, 'bold'))
        self.state_label.pack()
        self.details_label = ctk.CTkLabel(self, text='', justify='left', font=('Arial', 14))
        self.details_label.pack(pady=4)
        self.countdown_label = ctk.CTkLabel(self, text='', font=('Arial', 20, 'bold'))
        self.countdown_label.pack()
        self.error_label = ctk.CTkLabel(self, text='', wraplength=620)
        self.error_label.pack(pady=2)
        self.message_label = ctk.CTkLabel(self, text='', wraplength=620)
        self.message_label.pack(pady=2)

        buttons = ctk.CTkFrame(self, fg_color='transparent')
        buttons.pack(pady=6)
        self.location_button = primary_button(buttons, 'Verify Location', self._verify_location)
        self.location_button.pack(side='left', padx=6)
        self.camera_button = ctk.CTkButton(buttons, text='Retry Camera', command=self._retry_camera)
        self.camera_button.pack(side='left', padx=6)

        self.preview_label = ctk.CTkLabel(self, text='', width=480, height=360, fg_color='#000000')
        self.preview_label.pack(pady=8)
        self.render()

    def _open_entered(self):
        try:
            token = extract_token(self.link_entry.get())
        except SessionError as exc:
            show_message(self.error_label, Message(exc.message, ERROR))
            return
        self.open_token(token)

    def _scan(self):
        self.teardown()
        QRScanDialog(self, self.open_token)

    def open_token(self, token):
        self.teardown()
        self.verifier = AttendanceVerifier(
            token,
            self.context.api,
            self.app,
            dispatcher=self.context.dispatcher,
            on_change=self.render,
        )
        self.verifier.load()
        self._schedule_preview()

    def _verify_location(self):
        if self.verifier:
            self.verifier.verify_location()

    def _retry_camera(self):
        if self.verifier:
            self.verifier.start_camera()

    def _schedule_preview(self):
        self._preview_job = self.after(PREVIEW_INTERVAL_MS, self._update_preview)

    def _update_preview(self):
        self._preview_job = None
        verifier = self.verifier
        if verifier is None:
            return
        frame = verifier.camera.last_frame
        if verifier.live_tracks and frame is not None:
            try:
                show_image(self.preview_label, frame_to_image(frame, (480, 360)))
            except Exception as exc:
                logger.debug('Preview update failed: %s', exc)
        self._schedule_preview()

    def render(self):
        verifier = self.verifier
        if verifier is None:
            render_steps(self.steps_frame, [])
            self.location_button.configure(state='disabled')
            self.camera_button.configure(state='disabled')
            return

        render_steps(self.steps_frame, verifier.steps)
        self.state_label.configure(text=STATE_TEXT.get(verifier.state, ''))
        show_message(self.error_label, Message(verifier.error, ERROR) if verifier.error else None)
        show_message(self.message_label, verifier.messages.transient)

        period = verifier.period
        if period is not None:
            meta = period.metadata
            self.details_label.configure(text=(
                f'Subject: {meta.subject}    Faculty: {meta.facultyName}\n'
                f'Department: {meta.department}    Section: {meta.section}    Year: {meta.year}\n'
                f'Semester: {meta.semester}    Block: {meta.block}    Room: {meta.room}    Period: {meta.period}'
            ))
        if verifier.state in (VerifierState.AWAITING_LOCATION, VerifierState.CAPTURING):
            self.countdown_label.configure(text=f'Time left: {format_remaining(verifier.remaining)}')
        else:
            self.countdown_label.configure(text='')

        awaiting = verifier.state == VerifierState.AWAITING_LOCATION and not verifier.checking_location
        self.location_button.configure(state='normal' if awaiting else 'disabled')
        camera_failed = verifier.state == VerifierState.CAPTURING and verifier.error
        self.camera_button.configure(state='normal' if camera_failed else 'disabled')

        if verifier.state == VerifierState.SUCCESS:
            confirmation = verifier.confirmation or {}
            session = confirmation.get('session') or {}
            self.details_label.configure(text=(
                f"Roll Number: {confirmation.get('rollNumber', '')}\n"
                f"Subject: {session.get('subject', '')}    Period: {session.get('period', '')}\n"
                f"{confirmation.get('message', '')}"
            ))
        if not verifier.live_tracks:
            self.preview_label.configure(image=None, text='')

    def teardown(self):
        if self._preview_job is not None:
            self.after_cancel(self._preview_job)
            self._preview_job = None
        if self.verifier is not None:
            self.verifier.teardown()
            self.verifier = None


class QRScanDialog(ctk.CTkToplevel):
    """Reads QR codes from the camera until one carries a session token."""

    SCAN_INTERVAL_MS = 100

    def __init__(self, parent, on_token):
        super().__init__(parent)
        self.on_token = on_token
        self.title('Scan Attendance QR')
        self.geometry('560x500')
        self.protocol('WM_DELETE_WINDOW', self.close)
        self.camera = Camera()
        self._job = None
        self._closed = False
        self.video_label = ctk.CTkLabel(self, text='Initializing camera...', width=520, height=390, fg_color='#000000')
        self.video_label.pack(padx=20, pady=(20, 10))
        self.status_label = ctk.CTkLabel(self, text='Hold the QR code in front of the camera')
        self.status_label.pack()
        bring_window_to_front(self)
        try:
            self.camera.open()
        except CameraError as exc:
            self.status_label.configure(text=exc.message)
            return
        self._scan()

    def _scan(self):
        self._job = None
        if self._closed:
            return
        try:
            frame = self.camera.read()
        except CameraError as exc:
            self.status_label.configure(text=exc.message)
        else:
            show_image(self.video_label, frame_to_image(frame, (520, 390)))
            token = scan_token(frame)
            if token:
                self.close()
                self.on_token(token)
                return
        self._job = self.after(self.SCAN_INTERVAL_MS, self._scan)

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._job is not None:
            self.after_cancel(self._job)
        self.camera.release()
        self.destroy()
