"""OS settings-panel shortcuts and the appearance toggle."""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from ..automation import PlatformAutomation
from ..scoring import DEFAULT_THRESHOLD
from .base import AliasCommand, AliasCommandProvider

APPEARANCE_ID = "com.trace.controlcenter.toggle_appearance"
_MACOS_PREFIX = "x-apple.systempreferences:"


@dataclass(frozen=True)
class SettingsPanel(AliasCommand):
    macos_uri: Optional[str] = None
    linux_panel: Optional[str] = None


def _panel(panel_id, title, subtitle, aliases, macos, linux=None) -> SettingsPanel:
    return SettingsPanel(
        identifier=f"com.trace.controlcenter.{panel_id}",
        title=title,
        subtitle=subtitle,
        aliases=tuple(aliases),
        macos_uri=_MACOS_PREFIX + macos,
        linux_panel=linux,
    )


SETTINGS_PANELS = (
    SettingsPanel(
        identifier=APPEARANCE_ID,
        title="Toggle Appearance",
        subtitle="Switch between Light and Dark mode",
        aliases=("dark mode", "light mode", "appearance", "theme", "dark", "light",
                 "toggle appearance", "switch theme", "mode", "appearance mode",
                 "toggle", "switch", "toggle dark", "toggle light", "toggle mode"),
    ),
    _panel("bluetooth_settings", "Bluetooth Settings", "Open Bluetooth preferences",
           ["bluetooth", "bt", "wireless", "pairing", "bluetooth settings"],
           "com.apple.preferences.Bluetooth", "bluetooth"),
    _panel("wifi_settings", "WiFi Settings", "Open WiFi & Network preferences",
           ["wifi", "wi-fi", "wireless", "network", "internet", "network settings", "wifi settings"],
           "com.apple.Network-Settings.extension?Wi-Fi", "wifi"),
    _panel("system_update", "Software Update", "Check for system updates",
           ["update", "software update", "system update", "upgrade", "updates", "software upgrade"],
           "com.apple.Software-Update-Settings.extension"),
    _panel("security_privacy", "Security & Privacy", "Open Security & Privacy settings",
           ["security", "privacy", "security privacy", "firewall", "permissions"],
           "com.apple.settings.PrivacySecurity.extension", "privacy"),
    _panel("notifications", "Notifications", "Configure notification settings",
           ["notifications", "notification", "alerts", "do not disturb", "focus"],
           "com.apple.Notifications-Settings.extension", "notifications"),
    _panel("sharing", "Sharing", "Configure sharing preferences",
           ["sharing", "share", "file sharing", "screen sharing", "airdrop"],
           "com.apple.Sharing-Settings.extension", "sharing"),
    _panel("screen_time", "Screen Time", "Manage Screen Time settings",
           ["screen time", "screentime", "usage", "app limits", "downtime"],
           "com.apple.Screen-Time-Settings.extension"),
    _panel("keyboard_settings", "Keyboard", "Configure keyboard and typing preferences",
           ["keyboard", "typing", "key repeat", "input sources", "keyboard settings"],
           "com.apple.Keyboard-Settings.extension", "keyboard"),
    _panel("mouse_settings", "Mouse", "Configure mouse and pointer preferences",
           ["mouse", "pointer", "cursor", "scrolling", "mouse settings"],
           "com.apple.Mouse-Settings.extension", "mouse"),
    _panel("trackpad_settings", "Trackpad", "Configure trackpad gestures and preferences",
           ["trackpad", "touchpad", "gestures", "tap to click", "trackpad settings"],
           "com.apple.Trackpad-Settings.extension", "mouse"),
    _panel("display_settings", "Displays", "Configure display resolution and arrangement",
           ["display", "displays", "monitor", "resolution", "brightness", "display settings"],
           "com.apple.Displays-Settings.extension", "display"),
    _panel("dock_settings", "Dock & Menu Bar", "Configure Dock appearance and behavior",
           ["dock", "menu bar", "dock settings", "taskbar"],
           "com.apple.preference.dock", "multitasking"),
    _panel("datetime_settings", "Date & Time", "Set date, time, and time zone",
           ["date", "time", "clock", "timezone", "date time", "time zone",
            "date settings", "time settings"],
           "com.apple.Date-Time-Settings.extension", "datetime"),
    _panel("battery_settings", "Battery", "Monitor battery usage and power settings",
           ["battery", "power", "energy", "low power mode", "battery health", "battery settings"],
           "com.apple.Battery-Settings.extension", "power"),
    _panel("login_items", "Login Items", "Manage apps that open at login",
           ["login items", "startup", "launch", "startup items", "login", "startup programs"],
           "com.apple.LoginItems-Settings.extension", "applications"),
    _panel("time_machine", "Time Machine", "Configure automatic backups",
           ["time machine", "backup", "backups", "restore", "time machine settings"],
           "com.apple.TimeMachine-Settings.extension"),
    _panel("control_center_settings", "Control Center", "Customize Control Center and menu bar",
           ["control center", "menu bar", "control center settings", "menu bar settings"],
           "com.apple.Control-Center-Settings.extension"),
    _panel("extensions_settings", "Extensions", "Manage system extensions and plugins",
           ["extensions", "plugins", "add-ons", "extensions settings"],
           "com.apple.Extensions-Settings.extension"),
)


class SystemSettingsProvider(AliasCommandProvider):
    """Shortcuts into the operating system's settings panels."""

    name = "system_settings"

    def __init__(self, automation: PlatformAutomation, threshold: float = DEFAULT_THRESHOLD):
        super().__init__(threshold)
        self.automation = automation

    def commands(self) -> Sequence[AliasCommand]:
        return SETTINGS_PANELS

    def action_for(self, command: AliasCommand) -> Optional[Callable[[], Any]]:
        if command.identifier == APPEARANCE_ID:
            return self.automation.toggle_appearance
        return lambda: self.automation.open_settings_panel(command.macos_uri, command.linux_panel)
