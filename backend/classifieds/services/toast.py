from typing import Optional

from classifieds.state import AppState, Toast, ViewState

TOAST_DURATION_MS = 4000

TOAST_STYLES = {
    "success": ("bg-teal-600", "CheckCircle"),
    "error": ("bg-red-600", "XCircle"),
}
DEFAULT_TOAST_STYLE = ("bg-gray-700", "Search")

ICON_PATHS = {
    "CheckCircle": "M22 11.08V12a10 10 0 1 1-5.93-9.14 M12 2v10 M12 12l2-2 M12 12l-2-2",
    "XCircle": "M15 9l-6 6 M9 9l6 6 M12 2a10 10 0 1 0 10 10A10 10 0 0 0 12 2z",
}


def toast_style(kind: str):
    return TOAST_STYLES.get(kind, DEFAULT_TOAST_STYLE)


def icon_path(name: str) -> str:
    return ICON_PATHS.get(name, "")


class Notifier:
    def __init__(self, state: AppState):
        self.state = state

    def show(self, title: str, message: str, kind: str = "success", view: Optional[ViewState] = None) -> Toast:
        toast = Toast(title=title, message=message, kind=kind)
        # Only the latest toast is shown; a newer one replaces it.
        if view is not None:
            view.toast = toast
        else:
            self.state.notices.append(toast)
        print(f"[toast] {kind}: {title} - {message}")
        return toast

    def error(self, title: str, message: str, view: Optional[ViewState] = None) -> Toast:
        return self.show(title, message, "error", view)
