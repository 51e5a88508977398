import argparse
import logging

import customtkinter as ctk

from ..api import AttendanceAPI
from ..auth import AuthService, AuthSession
from ..config import Config
from ..errors import AuthenticationError, AuthorizationError, SessionError
from ..period import extract_token
from ..scheduling import ThreadDispatcher
from .ui_utils import SURFACE, bring_window_to_front

logger = logging.getLogger(__name__)


class AppContext:
    """Services shared by every view of one running client."""

    def __init__(self, root):
        self.root = root
        self.session = AuthSession()
        self.api = AttendanceAPI(auth=self.session)
        self.auth = AuthService(self.api, self.session)
        self.dispatcher = ThreadDispatcher(root)


class AttendCheckApp(ctk.CTk):
    def __init__(self, token=None):
        super().__init__()
        self.title('AttendCheck')
        self.geometry('1150x780')
        self.configure(fg_color=SURFACE)
        self.protocol('WM_DELETE_WINDOW', self.shutdown)
        self.context = AppContext(self)
        self.pending_token = token
        self.current_view = None

        if self.context.session.load():
            logger.info('Restored login for %s', self.context.session.user.name)
            self.show_home()
        else:
            self.show_view('login')
        bring_window_to_front(self)

    def _view_classes(self):
        from .admin import AdminView
        from .faculty import FacultyView
        from .login import LoginView
        from .student import StudentView
        return {
            'login': LoginView,
            'faculty': FacultyView,
            'student': StudentView,
            'admin': AdminView,
        }

    def show_view(self, name, **kwargs):
        self._close_current()
        view_class = self._view_classes().get(name)
        if view_class is None:
            logger.warning('Unknown view %r, showing login', name)
            view_class = self._view_classes()['login']
        try:
            self.current_view = view_class(self, self, **kwargs)
        except (AuthenticationError, AuthorizationError) as exc:
            logger.info('Access to %s refused: %s', name, exc.message)
            self.context.auth.logout()
            self.current_view = self._view_classes()['login'](self, self, notice=exc.message)
        self.current_view.pack(fill='both', expand=True)

    def show_home(self, result=None):
        view = self.context.auth.home_view(result)
        if view == 'student' and self.pending_token:
            token, self.pending_token = self.pending_token, None
            self.show_view('student', token=token)
            return
        self.show_view(view)

    def logout(self):
        self.context.auth.logout()
        self.show_view('login')

    def _close_current(self):
        view, self.current_view = self.current_view, None
        if view is None:
            return
        teardown = getattr(view, 'teardown', None)
        if teardown:
            teardown()
        view.destroy()

    def shutdown(self):
        try:
            self._close_current()
        finally:
            self.context.api.close()
            self.destroy()


def main(argv=None):
    parser = argparse.ArgumentParser(prog='attendcheck', description='QR-code and face-recognition attendance client')
    parser.add_argument('link', nargs='?', help='attendance link or session token to verify after login')
    args = parser.parse_args(argv)

    logging.basicConfig(level=Config.LOG_LEVEL, format=Config.LOG_FORMAT)
    ctk.set_appearance_mode('light')
    ctk.set_default_color_theme('green')

    token = None
    if args.link:
        try:
            token = extract_token(args.link)
        except SessionError as exc:
            logger.warning('Ignoring attendance link: %s', exc.message)

    app = AttendCheckApp(token=token)
    app.mainloop()


if __name__ == '__main__':
    main()
