"""Tests for program discovery and platform actions."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from tracecore.daemon.automation import PlatformAutomation
from tracecore.daemon.catalog import Program, ProgramCatalog, parse_desktop_entry


def write_entry(directory, stem, body):
    path = directory / f"{stem}.desktop"
    path.write_text("[Desktop Entry]\n" + body)
    return path


class TestDesktopEntry:

    def test_basic_entry(self, tmp_path):
        path = write_entry(tmp_path, "firefox", (
            "Type=Application\n"
            "Name=Firefox Web Browser\n"
            "Exec=firefox %u\n"
            "Keywords=Internet;WWW;Browser;\n"
        ))

        program = parse_desktop_entry(path)

        assert program.identifier == "firefox"
        assert program.display_name == "Firefox Web Browser"
        assert program.executable == "firefox"
        assert program.command == ("firefox",)
        assert program.keywords == ("internet", "www", "browser")

    @pytest.mark.parametrize("body", [
        "Type=Application\nName=Hidden\nExec=hidden\nNoDisplay=true\n",
        "Type=Application\nName=Gone\nExec=gone\nHidden=true\n",
        "Type=Link\nName=Docs\nURL=https://example.com\n",
        "Type=Application\nName=No Exec\n",
    ])
    def test_skipped_entries(self, tmp_path, body):
        assert parse_desktop_entry(write_entry(tmp_path, "skip", body)) is None

    def test_not_a_desktop_file(self, tmp_path):
        path = tmp_path / "notes.desktop"
        path.write_text("just text\n")
        assert parse_desktop_entry(path) is None

    def test_name_terms_start_at_words(self):
        program = Program(identifier="chrome", display_name="Google Chrome", executable="chrome")
        assert program.name_terms == ["google chrome", "chrome"]


class TestCatalog:

    def test_discovery_with_shadowing(self, tmp_path):
        user = tmp_path / "user"
        system = tmp_path / "system"
        user.mkdir()
        system.mkdir()
        write_entry(user, "editor", "Name=My Editor\nExec=myedit\n")
        write_entry(system, "editor", "Name=System Editor\nExec=sysedit\n")
        write_entry(system, "terminal", "Name=Terminal\nExec=term --new-window\n")

        catalog = ProgramCatalog(search_dirs=[user, system, tmp_path / "missing"])
        with patch("tracecore.daemon.catalog.platform.system", return_value="Linux"):
            programs = catalog.programs

        assert [p.display_name for p in programs] == ["My Editor", "Terminal"]
        assert catalog.get("terminal").command == ("term", "--new-window")
        assert catalog.get("nothing") is None

    def test_refresh_picks_up_new_entries(self, tmp_path):
        catalog = ProgramCatalog(search_dirs=[tmp_path])
        with patch("tracecore.daemon.catalog.platform.system", return_value="Linux"):
            assert catalog.refresh() == 0
            write_entry(tmp_path, "calc", "Name=Calculator\nExec=calc\n")
            assert catalog.refresh() == 1

    def test_running_identifiers(self):
        catalog = ProgramCatalog(programs=[
            Program(identifier="firefox", display_name="Firefox", executable="/usr/bin/firefox"),
            Program(identifier="code", display_name="Code", executable="code"),
        ], running_ttl=0)
        processes = [SimpleNamespace(info={'name': 'Firefox'}), SimpleNamespace(info={'name': None})]

        with patch("tracecore.daemon.catalog.psutil.process_iter", return_value=processes):
            assert catalog.running_identifiers() == frozenset({"firefox"})


class TestAutomation:

    def test_open_missing_path(self, tmp_path):
        automation = PlatformAutomation(system="Linux")
        with patch.object(automation, "_spawn") as spawn:
            assert automation.open_path(str(tmp_path / "missing")) is False
            spawn.assert_not_called()

    def test_open_existing_path(self, tmp_path):
        automation = PlatformAutomation(system="Linux")
        with patch.object(automation, "_spawn", return_value=True) as spawn:
            assert automation.open_path(str(tmp_path)) is True
            spawn.assert_called_once_with(["xdg-open", str(tmp_path)])

    def test_launch_uses_command(self):
        automation = PlatformAutomation(system="Linux")
        program = Program(identifier="t", display_name="Term", executable="term", command=("term", "-x"))
        with patch.object(automation, "_spawn", return_value=True) as spawn:
            assert automation.launch(program) is True
            spawn.assert_called_once_with(("term", "-x"))

    def test_spawn_failure(self):
        automation = PlatformAutomation(system="Linux")
        assert automation._spawn(["/nonexistent/tracecore-binary"]) is False

    def test_clipboard_without_tool(self, monkeypatch):
        monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
        automation = PlatformAutomation(system="Linux")
        with patch("tracecore.daemon.automation.shutil.which", return_value=None):
            assert automation.copy_to_clipboard("8") is False

    def test_window_placement_without_wmctrl(self):
        automation = PlatformAutomation(system="Linux")
        with patch("tracecore.daemon.automation.shutil.which", return_value=None):
            assert automation.apply_window_position("left-half") is False

    def test_window_placement_geometry(self):
        automation = PlatformAutomation(system="Linux")
        with patch("tracecore.daemon.automation.shutil.which", return_value="/usr/bin/wmctrl"), \
                patch.object(automation, "_screen_size", return_value=(1000, 800)), \
                patch.object(automation, "_spawn", return_value=True) as spawn:
            assert automation.apply_window_position("right-half") is True
            spawn.assert_called_once_with(["wmctrl", "-r", ":ACTIVE:", "-e", "0,500,0,500,800"])
