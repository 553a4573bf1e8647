"""Launcher's own commands: open settings, quit."""

from typing import Any, Callable, Optional, Sequence

from ..scoring import DEFAULT_THRESHOLD
from .base import AliasCommand, AliasCommandProvider

SETTINGS_ID = "com.trace.command.settings"
QUIT_ID = "com.trace.command.quit"

SYSTEM_COMMANDS = (
    AliasCommand(
        identifier=SETTINGS_ID,
        title="Trace Settings",
        subtitle="Configure hotkeys and preferences",
        aliases=("trace settings", "settings", "preferences", "config", "configuration",
                 "trace", "setup", "options", "prefs", "configure", "hotkeys"),
    ),
    AliasCommand(
        identifier=QUIT_ID,
        title="Quit Trace",
        subtitle="Exit the application",
        aliases=("quit trace", "quit", "exit", "close", "terminate", "stop", "end", "application"),
    ),
)


class SystemCommandProvider(AliasCommandProvider):
    """Settings and quit, wired to callbacks supplied by the host."""

    name = "commands"

    def __init__(self,
                 on_settings: Optional[Callable[[], Any]] = None,
                 on_quit: Optional[Callable[[], Any]] = None,
                 threshold: float = DEFAULT_THRESHOLD):
        super().__init__(threshold)
        self._actions = {SETTINGS_ID: on_settings, QUIT_ID: on_quit}

    def commands(self) -> Sequence[AliasCommand]:
        return SYSTEM_COMMANDS

    def action_for(self, command: AliasCommand) -> Optional[Callable[[], Any]]:
        return self._actions.get(command.identifier)
