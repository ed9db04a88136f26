"""Translate human-readable key and button names into xdotool conventions."""

from __future__ import annotations

MOUSE_BUTTONS: dict[str, int] = {
    "left": 1,
    "middle": 2,
    "right": 3,
}

# xdotool wheel buttons
SCROLL_BUTTONS: dict[str, int] = {
    "up": 4,
    "down": 5,
}

KEYS: dict[str, str] = {
    "alt": "Alt_L",
    "alt_left": "Alt_L",
    "alt_right": "Alt_R",
    "backspace": "BackSpace",
    "break": "Pause",
    "caps_lock": "Caps_Lock",
    "cmd": "Super_L",
    "command": "Super_L",
    "control": "Control_L",
    "control_left": "Control_L",
    "control_right": "Control_R",
    "ctrl": "Control_L",
    "del": "Delete",
    "delete": "Delete",
    "down": "Down",
    "end": "End",
    "enter": "Return",
    "esc": "Escape",
    "escape": "Escape",
    **{f"f{n}": f"F{n}" for n in range(1, 13)},
    "home": "Home",
    "insert": "Insert",
    "left": "Left",
    "menu": "Menu",
    "meta": "Meta_L",
    "num_lock": "Num_Lock",
    "page_down": "Page_Down",
    "page_up": "Page_Up",
    "pause": "Pause",
    "print": "Print",
    "right": "Right",
    "scroll_lock": "Scroll_Lock",
    "shift": "Shift_L",
    "shift_left": "Shift_L",
    "shift_right": "Shift_R",
    "space": "space",
    "super": "Super_L",
    "super_left": "Super_L",
    "super_right": "Super_R",
    "tab": "Tab",
    "up": "Up",
    "win": "Super_L",
    "windows": "Super_L",
}


def map_key(key: str) -> str:
    """Return the X11 keysym for ``key``; unknown names pass through lowercased."""
    lowered = key.lower()
    return KEYS.get(lowered, lowered)


def map_mouse_button(button: str) -> int:
    """Return the xdotool button code for ``button``, defaulting to left."""
    return MOUSE_BUTTONS.get(button.lower(), 1)
