"""Build the provider list from configuration."""

from typing import Any, Callable, List, Optional

from loguru import logger

from ..automation import PlatformAutomation
from ..bus import EventBus
from ..catalog import ProgramCatalog
from ..config import Config
from ..network import NetworkInfo
from .arithmetic import CalculatorProvider
from .base import ResultProvider
from .commands import SystemCommandProvider
from .network import NetworkCommandProvider
from .programs import ProgramProvider
from .shortcuts import FolderProvider, QuickLinkProvider
from .system_settings import SystemSettingsProvider
from .web import WebSearchProvider
from .windows import WindowPlacementProvider


def build_providers(config: Config,
                    catalog: ProgramCatalog,
                    automation: PlatformAutomation,
                    event_bus: Optional[EventBus] = None,
                    network: Optional[NetworkInfo] = None,
                    on_settings: Optional[Callable[[], Any]] = None,
                    on_quit: Optional[Callable[[], Any]] = None) -> List[ResultProvider]:
    """Instantiate every enabled provider in a fixed order."""
    enabled = config.providers
    threshold = config.search.match_threshold
    providers: List[ResultProvider] = []

    if enabled.programs:
        providers.append(ProgramProvider(catalog, automation,
                                         limit=config.search.program_limit,
                                         threshold=threshold))
    if enabled.commands:
        providers.append(SystemCommandProvider(on_settings, on_quit, threshold=threshold))
    if enabled.system_settings:
        providers.append(SystemSettingsProvider(automation, threshold=threshold))
    if enabled.window_placement:
        providers.append(WindowPlacementProvider(automation, threshold=threshold))
    if enabled.shortcuts:
        providers.append(FolderProvider(config.folders, automation, threshold=threshold))
        providers.append(QuickLinkProvider(config.quick_links, automation, threshold=threshold))
    if enabled.network:
        providers.append(NetworkCommandProvider(network or NetworkInfo(), automation,
                                                event_bus, threshold=threshold))
    if enabled.calculator:
        providers.append(CalculatorProvider(automation, event_bus))
    if enabled.web_search:
        providers.append(WebSearchProvider(config.web_search, automation))

    logger.info(f"Registered {len(providers)} providers: {', '.join(p.name for p in providers)}")
    return providers
