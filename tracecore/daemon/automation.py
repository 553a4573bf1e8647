"""Outward platform actions invoked when a candidate is activated.

Each action returns True on success. Anything the current platform cannot do
is logged and reported as False; nothing here raises into the dispatcher.
"""

import os
import platform
import shutil
import subprocess
import webbrowser
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from loguru import logger

from .catalog import Program

# wmctrl geometry fractions (x, y, width, height) per window position
_WINDOW_GEOMETRY: Dict[str, tuple] = {
    "left-half": (0, 0, 0.5, 1),
    "right-half": (0.5, 0, 0.5, 1),
    "center-half": (0.25, 0, 0.5, 1),
    "top-half": (0, 0, 1, 0.5),
    "bottom-half": (0, 0.5, 1, 0.5),
    "top-left": (0, 0, 0.5, 0.5),
    "top-right": (0.5, 0, 0.5, 0.5),
    "bottom-left": (0, 0.5, 0.5, 0.5),
    "bottom-right": (0.5, 0.5, 0.5, 0.5),
    "first-third": (0, 0, 1 / 3, 1),
    "center-third": (1 / 3, 0, 1 / 3, 1),
    "last-third": (2 / 3, 0, 1 / 3, 1),
    "first-two-thirds": (0, 0, 2 / 3, 1),
    "last-two-thirds": (1 / 3, 0, 2 / 3, 1),
    "almost-maximize": (0.05, 0.05, 0.9, 0.9),
    "center": (0.2, 0.15, 0.6, 0.7),
    "center-prominently": (0.125, 0.05, 0.75, 0.9),
}


class PlatformAutomation:
    """Launches programs, opens URLs/paths and drives the window manager."""

    def __init__(self, system: Optional[str] = None):
        self.system = system or platform.system()

    def _spawn(self, argv: Sequence[str]) -> bool:
        try:
            subprocess.Popen(
                list(argv),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to run {argv[0]}: {e}")
            return False
        return True

    def _opener(self) -> List[str]:
        if self.system == "Darwin":
            return ["open"]
        if self.system == "Windows":
            return ["explorer"]
        return ["xdg-open"]

    def launch(self, program: Program) -> bool:
        logger.info(f"Launching {program.display_name}")
        return self._spawn(program.command or (program.executable,))

    def open_url(self, url: str) -> bool:
        logger.info(f"Opening URL: {url}")
        return webbrowser.open(url)

    def open_path(self, path: str) -> bool:
        expanded = Path(path).expanduser()
        if not expanded.exists():
            logger.warning(f"Path does not exist: {expanded}")
            return False
        return self._spawn(self._opener() + [str(expanded)])

    def open_settings_panel(self, macos_uri: Optional[str], linux_panel: Optional[str]) -> bool:
        if self.system == "Darwin" and macos_uri:
            return self._spawn(["open", macos_uri])
        if self.system == "Linux" and linux_panel and shutil.which("gnome-control-center"):
            return self._spawn(["gnome-control-center", linux_panel])
        logger.warning("Settings panel not available on this platform")
        return False

    def toggle_appearance(self) -> bool:
        if self.system == "Darwin":
            script = ('tell application "System Events" to tell appearance preferences '
                      'to set dark mode to not dark mode')
            return self._spawn(["osascript", "-e", script])
        if self.system == "Linux" and shutil.which("gsettings"):
            try:
                current = subprocess.run(
                    ["gsettings", "get", "org.gnome.desktop.interface", "color-scheme"],
                    capture_output=True, text=True, timeout=2,
                ).stdout.strip()
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.error(f"Failed to read color scheme: {e}")
                return False
            target = "default" if "dark" in current else "prefer-dark"
            return self._spawn(["gsettings", "set", "org.gnome.desktop.interface",
                                "color-scheme", target])
        logger.warning("Appearance toggle not available on this platform")
        return False

    def apply_window_position(self, position: str) -> bool:
        if not shutil.which("wmctrl"):
            logger.warning(f"Window placement {position} needs wmctrl")
            return False

        if position in ("maximize", "maximize-height"):
            prop = "maximized_vert,maximized_horz" if position == "maximize" else "maximized_vert"
            return self._spawn(["wmctrl", "-r", ":ACTIVE:", "-b", f"add,{prop}"])
        if position == "full-screen":
            return self._spawn(["wmctrl", "-r", ":ACTIVE:", "-b", "toggle,fullscreen"])

        geometry = _WINDOW_GEOMETRY.get(position)
        if geometry is None:
            logger.warning(f"Window placement {position} is not supported")
            return False

        screen = self._screen_size()
        if screen is None:
            return False
        width, height = screen
        x, y, w, h = geometry
        target = f"0,{int(x * width)},{int(y * height)},{int(w * width)},{int(h * height)}"
        return self._spawn(["wmctrl", "-r", ":ACTIVE:", "-e", target])

    def _screen_size(self) -> Optional[tuple]:
        try:
            output = subprocess.run(["wmctrl", "-d"], capture_output=True, text=True, timeout=2).stdout
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Failed to query desktop geometry: {e}")
            return None
        for line in output.splitlines():
            if " * " in line and "WA:" in line:
                area = line.split("WA:")[1].split()[1]
                w, h = area.split("x")
                return int(w), int(h)
        return None

    def copy_to_clipboard(self, text: str) -> bool:
        if self.system == "Darwin":
            command = ["pbcopy"]
        elif os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-copy"):
            command = ["wl-copy"]
        elif shutil.which("xclip"):
            command = ["xclip", "-selection", "clipboard"]
        else:
            logger.warning("No clipboard tool available")
            return False
        try:
            subprocess.run(command, input=text, text=True, check=True, timeout=2)
        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Clipboard copy failed: {e}")
            return False
        return True
