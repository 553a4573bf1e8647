"""Installed-program catalog and running-process detection."""

import configparser
import os
import platform
import shlex
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional

import psutil
from loguru import logger

# Field codes like %U or %f in a desktop entry's Exec line
_EXEC_FIELD_CODES = {'%f', '%F', '%u', '%U', '%d', '%D', '%n', '%N', '%i', '%c', '%k', '%v', '%m'}


@dataclass(frozen=True)
class Program:
    """An installed, launchable program."""
    identifier: str
    display_name: str
    executable: str
    command: tuple = ()
    path: Optional[str] = None
    keywords: tuple = ()

    @property
    def process_name(self) -> str:
        return Path(self.executable).name.lower()

    @property
    def name_terms(self) -> List[str]:
        """The lower-cased name plus every suffix starting at a word boundary."""
        words = self.display_name.lower().split()
        return [' '.join(words[i:]) for i in range(len(words))] or [self.display_name.lower()]


def parse_desktop_entry(path: Path) -> Optional[Program]:
    """Parse a freedesktop ``.desktop`` file; None for hidden or non-app entries."""
    parser = configparser.RawConfigParser(interpolation=None, strict=False)
    parser.optionxform = str
    try:
        parser.read(path, encoding='utf-8')
    except (configparser.Error, UnicodeDecodeError, OSError) as e:
        logger.debug(f"Skipping unreadable desktop entry {path}: {e}")
        return None

    if not parser.has_section('Desktop Entry'):
        return None
    entry = parser['Desktop Entry']

    if entry.get('Type', 'Application') != 'Application':
        return None
    if entry.get('NoDisplay', '').lower() == 'true' or entry.get('Hidden', '').lower() == 'true':
        return None

    name = entry.get('Name')
    exec_line = entry.get('Exec')
    if not name or not exec_line:
        return None

    try:
        argv = [a for a in shlex.split(exec_line) if a not in _EXEC_FIELD_CODES]
    except ValueError:
        return None
    if not argv:
        return None

    return Program(
        identifier=path.stem,
        display_name=name,
        executable=argv[0],
        command=tuple(argv),
        path=str(path),
        keywords=tuple(k.strip().lower() for k in entry.get('Keywords', '').split(';') if k.strip()),
    )


class ProgramCatalog:
    """
    Discovers installed programs and reports which ones are running.

    Discovery happens once on first use (or on refresh); the running set is
    recomputed at most every ``running_ttl`` seconds since walking the
    process table is comparatively slow.
    """

    def __init__(self,
                 programs: Optional[Iterable[Program]] = None,
                 search_dirs: Optional[List[Path]] = None,
                 running_ttl: float = 2.0):
        self._programs: Optional[List[Program]] = list(programs) if programs is not None else None
        self._search_dirs = search_dirs
        self._running_ttl = running_ttl
        self._running: FrozenSet[str] = frozenset()
        self._running_checked = 0.0
        self._lock = threading.Lock()

    @property
    def programs(self) -> List[Program]:
        with self._lock:
            if self._programs is None:
                self._programs = self._discover()
            return self._programs

    def refresh(self) -> int:
        with self._lock:
            self._programs = self._discover()
            return len(self._programs)

    def get(self, identifier: str) -> Optional[Program]:
        for program in self.programs:
            if program.identifier == identifier:
                return program
        return None

    def running_identifiers(self) -> FrozenSet[str]:
        now = time.monotonic()
        if now - self._running_checked < self._running_ttl:
            return self._running

        names = set()
        for proc in psutil.process_iter(['name']):
            name = proc.info.get('name')
            if name:
                names.add(name.lower())

        by_process: Dict[str, List[str]] = {}
        for program in self.programs:
            by_process.setdefault(program.process_name, []).append(program.identifier)

        running = set()
        for name in names:
            running.update(by_process.get(name, ()))

        self._running = frozenset(running)
        self._running_checked = now
        return self._running

    def _discover(self) -> List[Program]:
        system = platform.system()
        if system == "Darwin":
            programs = self._discover_macos()
        else:
            programs = self._discover_desktop_entries()
        logger.info(f"Discovered {len(programs)} programs")
        return programs

    def _desktop_dirs(self) -> List[Path]:
        if self._search_dirs is not None:
            return self._search_dirs
        data_home = Path(os.environ.get('XDG_DATA_HOME', Path.home() / '.local' / 'share'))
        data_dirs = os.environ.get('XDG_DATA_DIRS', '/usr/local/share:/usr/share').split(':')
        dirs = [data_home / 'applications']
        dirs.extend(Path(d) / 'applications' for d in data_dirs if d)
        return dirs

    def _discover_desktop_entries(self) -> List[Program]:
        programs: List[Program] = []
        seen = set()
        # Earlier directories shadow later ones with the same desktop id
        for directory in self._desktop_dirs():
            if not directory.is_dir():
                continue
            for entry in sorted(directory.glob('*.desktop')):
                if entry.stem in seen:
                    continue
                seen.add(entry.stem)
                program = parse_desktop_entry(entry)
                if program is not None:
                    programs.append(program)
        return programs

    def _discover_macos(self) -> List[Program]:
        programs: List[Program] = []
        dirs = self._search_dirs or [Path('/Applications'), Path.home() / 'Applications']
        for directory in dirs:
            if not directory.is_dir():
                continue
            for entry in sorted(directory.iterdir()):
                if entry.suffix == '.app' and entry.is_dir():
                    programs.append(Program(
                        identifier=entry.stem.lower().replace(' ', '-'),
                        display_name=entry.stem,
                        executable=entry.stem,
                        command=('open', '-a', str(entry)),
                        path=str(entry),
                    ))
        return programs
