"""Shared UI helpers for the CustomTkinter views."""

import customtkinter as ctk

from ..messages import ERROR, INFO, SUCCESS, WARNING
from ..stepper import ACTIVE, BLOCKED, COMPLETE

PRIMARY = ('#228B22', '#32CD32')
PRIMARY_HOVER = ('#006400', '#004d00')
DANGER = ('#dc3545', '#c82333')
DANGER_HOVER = ('#a71d2a', '#7f151f')
SURFACE = ('#f0f8f0', '#1e4a1e')

MESSAGE_COLORS = {
    SUCCESS: ('#0b5f0b', '#b6f7b6'),
    INFO: ('#1f4e79', '#9cc9f5'),
    WARNING: ('#8a5a00', '#ffd27f'),
    ERROR: ('#a71d2a', '#ff9b9b'),
}

STEP_COLORS = {
    COMPLETE: '#228B22',
    ACTIVE: '#1f6aa5',
    BLOCKED: '#c82333',
}
STEP_PENDING_COLOR = '#9e9e9e'


def bring_window_to_front(window, release_delay=400):
    """Lift the given toplevel window so it appears in front of other apps."""
    if window is None:
        return

    def _release_topmost():
        try:
            window.attributes('-topmost', False)
        except Exception:
            pass

    try:
        window.lift()
        window.focus_force()
        window.attributes('-topmost', True)
        if release_delay and hasattr(window, 'after'):
            window.after(release_delay, _release_topmost)
        else:
            _release_topmost()
    except Exception:
        pass


def clear_frame(frame):
    for child in frame.winfo_children():
        child.destroy()


def show_message(label, message):
    """Render a :class:`~attendcheck.messages.Message` (or None) on a label."""
    if message is None:
        label.configure(text='')
        return
    label.configure(text=message.text, text_color=MESSAGE_COLORS.get(message.level, MESSAGE_COLORS[ERROR]))


def show_image(label, pil_image, size=None):
    size = size or pil_image.size
    photo = ctk.CTkImage(light_image=pil_image, dark_image=pil_image, size=size)
    label.configure(image=photo, text='')
    label.image = photo


def render_steps(frame, steps):
    clear_frame(frame)
    for index, step in enumerate(steps, start=1):
        color = STEP_COLORS.get(step.status, STEP_PENDING_COLOR)
        ctk.CTkLabel(
            frame,
            text=f'{index}. {step.label}',
            font=('Arial', 15, 'bold'),
            text_color=color,
        ).pack(side='left', padx=12)


def labeled_entry(parent, label, show=None, width=320):
    ctk.CTkLabel(parent, text=label, font=('Arial', 14)).pack(anchor='w', padx=20, pady=(8, 0))
    entry = ctk.CTkEntry(parent, width=width, show=show)
    entry.pack(anchor='w', padx=20, pady=(2, 4))
    return entry


def option_menu(parent, label, values, command=None, width=220):
    ctk.CTkLabel(parent, text=label, font=('Arial', 14)).pack(anchor='w', padx=20, pady=(8, 0))
    variable = ctk.StringVar(value='')
    menu = ctk.CTkOptionMenu(parent, values=values or [''], variable=variable, command=command, width=width,
                             fg_color=PRIMARY, button_color=PRIMARY_HOVER)
    menu.pack(anchor='w', padx=20, pady=(2, 4))
    return menu, variable


def primary_button(parent, text, command, width=220):
    return ctk.CTkButton(parent, text=text, command=command, width=width, height=40,
                         font=('Arial', 15, 'bold'), fg_color=PRIMARY, hover_color=PRIMARY_HOVER)


def danger_button(parent, text, command, width=120):
    return ctk.CTkButton(parent, text=text, command=command, width=width,
                         fg_color=DANGER, hover_color=DANGER_HOVER)
