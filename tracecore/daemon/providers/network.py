"""Public and private IP address commands."""

import asyncio
from typing import Any, Callable, Optional, Sequence

from loguru import logger

from ..automation import PlatformAutomation
from ..bus import Event, EventBus
from ..error_handling import NetworkLookupError
from ..models import Candidate
from ..network import NetworkInfo
from ..scoring import DEFAULT_THRESHOLD
from .base import AliasCommand, AliasCommandProvider

PUBLIC_IP_ID = "com.trace.command.publicip"
PRIVATE_IP_ID = "com.trace.command.privateip"

NETWORK_COMMANDS = (
    AliasCommand(
        identifier=PUBLIC_IP_ID,
        title="Public IP Address",
        subtitle="Get your external IP address",
        aliases=("public ip", "external ip", "public ip address", "external ip address", "my ip",
                 "ip address", "public", "external", "internet ip", "wan ip", "outside ip"),
    ),
    AliasCommand(
        identifier=PRIVATE_IP_ID,
        title="Private IP Address",
        subtitle="Get your local network IP address",
        aliases=("private ip", "local ip", "private ip address", "local ip address", "internal ip",
                 "lan ip", "network ip", "private", "local", "internal", "wifi ip", "ethernet ip"),
    ),
)


class NetworkCommandProvider(AliasCommandProvider):
    """
    Address lookups that resolve after activation.

    Matching never touches the network. Activating a candidate performs the
    lookup, copies the address and reports it on the bus as
    ``result.completed`` (or ``result.failed``) for that identifier.
    """

    name = "network"

    def __init__(self,
                 network: NetworkInfo,
                 automation: PlatformAutomation,
                 event_bus: Optional[EventBus] = None,
                 threshold: float = DEFAULT_THRESHOLD):
        super().__init__(threshold)
        self.network = network
        self.automation = automation
        self.event_bus = event_bus

    def commands(self) -> Sequence[AliasCommand]:
        return NETWORK_COMMANDS

    def _cached(self, identifier: str) -> Optional[str]:
        if identifier == PUBLIC_IP_ID:
            return self.network.cached_public_ip
        return self.network.cached_private_ip

    def candidate_for(self, command: AliasCommand, match_score: float) -> Candidate:
        candidate = super().candidate_for(command, match_score)
        cached = self._cached(command.identifier)
        if cached:
            candidate.title = f"{command.title}: {cached}"
            candidate.subtitle = f"Copy {cached} to clipboard"
            candidate.metadata['address'] = cached
        return candidate

    def action_for(self, command: AliasCommand) -> Optional[Callable[[], Any]]:
        return lambda: self.resolve(command)

    async def _lookup(self, identifier: str) -> str:
        if identifier == PUBLIC_IP_ID:
            return await self.network.fetch_public_ip()
        return await asyncio.to_thread(self.network.private_ip)

    async def resolve(self, command: AliasCommand) -> Optional[str]:
        self._emit("result.loading", {'identifier': command.identifier})
        try:
            address = await self._lookup(command.identifier)
        except NetworkLookupError as e:
            logger.warning(f"{command.title} lookup failed: {e}")
            self._emit("result.failed", {
                'identifier': command.identifier,
                'title': command.title,
                'subtitle': "IP address not found",
                'error': str(e),
            })
            return None

        self.automation.copy_to_clipboard(address)
        self._emit("result.completed", {
            'identifier': command.identifier,
            'title': f"{command.title}: {address}",
            'subtitle': "Copied to clipboard",
            'value': address,
        })
        return address

    def _emit(self, event_type: str, data: dict) -> None:
        if self.event_bus is not None:
            self.event_bus.emit_nowait(Event(type=event_type, data=data, source=self.name))
