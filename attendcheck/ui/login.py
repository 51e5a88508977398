import logging

import customtkinter as ctk

from ..errors import ApiError, AttendCheckError, AuthenticationError, TransientError
from ..forms import ForgotPasswordForm, LoginForm, ResetPasswordForm, StudentSignupForm, first_error
from ..messages import ERROR, SUCCESS, Message
from .ui_utils import bring_window_to_front, labeled_entry, primary_button, show_message

logger = logging.getLogger(__name__)

IDENTIFIER_LABELS = {
    'faculty': 'Employee ID',
    'admin': 'Employee ID',
    'student': 'Email',
}


def _failure_message(exc, fallback):
    if isinstance(exc, TransientError) and exc.status_code is None:
        return 'Network error. Please try again later.'
    if isinstance(exc, ApiError):
        return exc.message or fallback
    return fallback


class LoginView(ctk.CTkFrame):
    def __init__(self, master, app, notice=None):
        super().__init__(master, fg_color='transparent')
        self.app = app
        self.context = app.context

        card = ctk.CTkFrame(self, corner_radius=16)
        card.place(relx=0.5, rely=0.5, anchor='center')

        ctk.CTkLabel(card, text='Sign in to your account', font=('Arial', 24, 'bold')).pack(padx=40, pady=(30, 10))

        self.role_var = ctk.StringVar(value='faculty')
        self.role_tabs = ctk.CTkSegmentedButton(card, values=['faculty', 'student', 'admin'],
                                                variable=self.role_var, command=self._role_changed)
        self.role_tabs.pack(pady=(0, 10))

        self.identifier_label = ctk.CTkLabel(card, text=IDENTIFIER_LABELS['faculty'], font=('Arial', 14))
        self.identifier_label.pack(anchor='w', padx=20, pady=(8, 0))
        self.identifier_entry = ctk.CTkEntry(card, width=320)
        self.identifier_entry.pack(anchor='w', padx=20, pady=(2, 4))
        self.password_entry = labeled_entry(card, 'Password', show='*')
        self.password_entry.bind('<Return>', lambda _event=None: self._submit())

        self.error_label = ctk.CTkLabel(card, text='', wraplength=320)
        self.error_label.pack(pady=(6, 0))
        if notice:
            show_message(self.error_label, Message(notice, ERROR))

        self.login_button = primary_button(card, 'Sign in', self._submit, width=320)
        self.login_button.pack(padx=20, pady=(10, 10))

        links = ctk.CTkFrame(card, fg_color='transparent')
        links.pack(pady=(0, 25))
        ctk.CTkButton(links, text='Forgot password?', fg_color='transparent', text_color=('#1f6aa5', '#9cc9f5'),
                      width=10, command=lambda: ForgotPasswordDialog(self, self.context)).pack(side='left', padx=6)
        ctk.CTkButton(links, text='Reset with token', fg_color='transparent', text_color=('#1f6aa5', '#9cc9f5'),
                      width=10, command=lambda: ResetPasswordDialog(self, self.context)).pack(side='left', padx=6)
        ctk.CTkButton(links, text='Student sign-up', fg_color='transparent', text_color=('#1f6aa5', '#9cc9f5'),
                      width=10, command=lambda: StudentSignupDialog(self, self.context)).pack(side='left', padx=6)

    def _role_changed(self, role):
        self.identifier_label.configure(text=IDENTIFIER_LABELS.get(role, 'Email'))

    def _submit(self):
        form = LoginForm(data={
            'identifier': self.identifier_entry.get(),
            'password': self.password_entry.get(),
            'role': self.role_var.get(),
        })
        if not form.validate():
            show_message(self.error_label, Message(first_error(form), ERROR))
            return
        show_message(self.error_label, None)
        self.login_button.configure(state='disabled', text='Signing in...')
        identifier, password, role = form.identifier.data, form.password.data, form.role.data
        self.context.dispatcher.submit(
            lambda: self.context.auth.login(identifier, password, role),
            self._logged_in,
            self._login_failed,
        )

    def _logged_in(self, result):
        self.app.show_home(result)

    def _login_failed(self, exc):
        self.login_button.configure(state='normal', text='Sign in')
        if isinstance(exc, AuthenticationError):
            text = 'Incorrect credentials. Please try again.'
        else:
            if not isinstance(exc, AttendCheckError):
                logger.error('Login failed', exc_info=exc)
            text = 'Login failed. Please try again.'
        show_message(self.error_label, Message(text, ERROR))


class _Dialog(ctk.CTkToplevel):
    def __init__(self, parent, context, title, geometry='420x380'):
        super().__init__(parent)
        self.context = context
        self.title(title)
        self.geometry(geometry)
        self.resizable(False, False)
        self.protocol('WM_DELETE_WINDOW', self.close)
        self.message_label = None
        self._closed = False
        bring_window_to_front(self)
        self.after(100, self._grab)

    def _grab(self):
        try:
            self.grab_set()
        except Exception:
            pass

    def _add_message_label(self):
        self.message_label = ctk.CTkLabel(self, text='', wraplength=360)
        self.message_label.pack(pady=(8, 0))

    def set_message(self, text, level=ERROR):
        if not self._closed:
            show_message(self.message_label, Message(text, level))

    def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            self.grab_release()
        except Exception:
            pass
        self.destroy()


class ForgotPasswordDialog(_Dialog):
    def __init__(self, parent, context):
        super().__init__(parent, context, 'Forgot Password', '420x260')
        self.email_entry = labeled_entry(self, 'Email')
        self._add_message_label()
        self.send_button = primary_button(self, 'Send reset link', self._submit)
        self.send_button.pack(pady=12)

    def _submit(self):
        form = ForgotPasswordForm(data={'email': self.email_entry.get().strip()})
        if not form.validate():
            self.set_message(first_error(form))
            return
        self.send_button.configure(state='disabled')
        self.context.dispatcher.submit(lambda: self.context.api.forgot_password(form.email.data),
                                       self._sent, self._failed)

    def _sent(self, payload):
        if self._closed:
            return
        self.send_button.configure(state='normal')
        message = payload.get('message') if isinstance(payload, dict) else None
        self.set_message(message or 'If the email is registered, a reset link has been sent.', SUCCESS)

    def _failed(self, exc):
        if self._closed:
            return
        self.send_button.configure(state='normal')
        self.set_message(_failure_message(exc, 'Something went wrong. Please try again.'))


class ResetPasswordDialog(_Dialog):
    def __init__(self, parent, context, email='', token=''):
        super().__init__(parent, context, 'Reset Password', '420x470')
        self.email_entry = labeled_entry(self, 'Email')
        self.email_entry.insert(0, email)
        self.token_entry = labeled_entry(self, 'Reset token')
        self.token_entry.insert(0, token)
        self.password_entry = labeled_entry(self, 'New password', show='*')
        self.confirm_entry = labeled_entry(self, 'Confirm new password', show='*')
        self._add_message_label()
        self.reset_button = primary_button(self, 'Reset password', self._submit)
        self.reset_button.pack(pady=12)

    def _submit(self):
        form = ResetPasswordForm(data={
            'email': self.email_entry.get().strip(),
            'token': self.token_entry.get().strip(),
            'new_password': self.password_entry.get(),
            'confirm_password': self.confirm_entry.get(),
        })
        if not form.validate():
            self.set_message(first_error(form))
            return
        self.reset_button.configure(state='disabled')
        self.context.dispatcher.submit(
            lambda: self.context.api.reset_password(form.email.data, form.token.data,
                                                    form.new_password.data, form.confirm_password.data),
            self._reset,
            self._failed,
        )

    def _reset(self, payload):
        if self._closed:
            return
        message = payload.get('message') if isinstance(payload, dict) else None
        self.set_message(message or 'Password has been reset. You can now sign in.', SUCCESS)
        self.after(2000, self.close)

    def _failed(self, exc):
        if self._closed:
            return
        self.reset_button.configure(state='normal')
        self.set_message(_failure_message(exc, 'Password reset failed. Please try again.'))


class StudentSignupDialog(_Dialog):
    """Self sign-up for students already registered by an administrator."""

    LOOKUP_DELAY_MS = 500

    def __init__(self, parent, context):
        super().__init__(parent, context, 'Student Sign-up', '460x520')
        self.roll_entry = labeled_entry(self, 'Roll Number')
        self.roll_entry.bind('<KeyRelease>', self._schedule_lookup)
        self.details_label = ctk.CTkLabel(self, text='', justify='left', wraplength=400)
        self.details_label.pack(anchor='w', padx=20, pady=(4, 4))
        self.password_entry = labeled_entry(self, 'Password', show='*')
        self.confirm_entry = labeled_entry(self, 'Confirm Password', show='*')
        self._add_message_label()
        self.register_button = primary_button(self, 'Register', self._submit)
        self.register_button.pack(pady=12)
        self.lookup_error = None
        self._lookup_job = None

    def _schedule_lookup(self, _event=None):
        if self._lookup_job is not None:
            self.after_cancel(self._lookup_job)
        self._lookup_job = self.after(self.LOOKUP_DELAY_MS, self._lookup)

    def _lookup(self):
        self._lookup_job = None
        roll_number = self.roll_entry.get().strip()
        self.lookup_error = None
        if len(roll_number) < 3:
            self.details_label.configure(text='')
            return
        self.details_label.configure(text='Fetching student details...')
        self.context.dispatcher.submit(
            lambda: self.context.api.student_lookup(roll_number),
            lambda details: self._found(roll_number, details),
            lambda exc: self._not_found(roll_number, exc),
        )

    def _found(self, roll_number, details):
        if self._closed or roll_number != self.roll_entry.get().strip():
            return
        details = details if isinstance(details, dict) else {}
        semester = details.get('semester') or details.get('semister') or ''
        self.details_label.configure(text=(
            f"Name: {details.get('name', '')}\n"
            f"Email: {details.get('email', '')}\n"
            f"Department: {details.get('department', '')}  Section: {details.get('section', '')}\n"
            f"Year: {details.get('year', '')}  Semester: {semester}"
        ))

    def _not_found(self, roll_number, exc):
        if self._closed or roll_number != self.roll_entry.get().strip():
            return
        if isinstance(exc, ApiError) and exc.status_code == 404:
            self.lookup_error = exc.message or 'Student not found with this roll number'
        elif isinstance(exc, TransientError):
            self.lookup_error = 'Network error. Please check if the server is running.'
        else:
            self.lookup_error = getattr(exc, 'message', None) or 'Error fetching student details'
        self.details_label.configure(text=self.lookup_error)

    def _submit(self):
        form = StudentSignupForm(data={
            'roll_number': self.roll_entry.get().strip(),
            'password': self.password_entry.get(),
            'confirm_password': self.confirm_entry.get(),
        })
        if not form.validate():
            self.set_message(first_error(form))
            return
        if self.lookup_error:
            self.set_message('Please enter a valid roll number')
            return
        self.register_button.configure(state='disabled')
        self.context.dispatcher.submit(
            lambda: self.context.api.student_signup(form.roll_number.data, form.password.data,
                                                    form.confirm_password.data),
            self._registered,
            self._failed,
        )

    def _registered(self, _payload):
        if self._closed:
            return
        self.set_message('Successfully Registered', SUCCESS)
        self.after(1500, self.close)

    def _failed(self, exc):
        if self._closed:
            return
        self.register_button.configure(state='normal')
        self.set_message(_failure_message(exc, 'Registration failed. Please try again.'))
