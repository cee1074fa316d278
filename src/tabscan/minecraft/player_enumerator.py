"""Online player enumeration through tab completion.

The server only completes names that start with the typed prefix, so a sweep
asks ``"/msg a"``, ``"/msg b"``, ... one prefix at a time and unions the
answers. Requests are strictly sequential with a pause between prefixes so the
bot does not flood the server.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Set

from tabscan.configuration.app_configuration import DEFAULT_PREFIXES
from tabscan.datatypes.errors import ConnectionLostError, NotReadyError, ProtocolTimeoutError
from tabscan.minecraft.connection_supervisor import ConnectionSupervisor
from tabscan.moderation.rule_matcher import is_legal_nickname
from tabscan.util.logger import get_logger

logger = get_logger("player_enumerator")


def extract_names(matches: Iterable[object]) -> List[str]:
    """Pull plain nicknames out of raw completion matches."""
    names: List[str] = []
    for match in matches:
        if isinstance(match, dict):
            match = match.get("match")
        if not match:
            continue
        name = str(match).strip()
        # Some servers answer with the whole command line ("/msg Steve")
        name = name.rsplit(" ", 1)[-1]
        if is_legal_nickname(name):
            names.append(name)
    return names


class PlayerEnumerator:
    """Collect the online player list of a READY session.

    Args:
        supervisor: Source of the live session and readiness state.
        prefixes: Default prefix alphabet for a sweep.
        completion_command: Text sent before each prefix.
        request_timeout: Per-request wait; a timeout counts as "no matches".
        inter_prefix_delay: Pause between two prefixes, in seconds.
    """

    def __init__(
        self,
        supervisor: ConnectionSupervisor,
        *,
        prefixes: Iterable[str] = tuple(DEFAULT_PREFIXES),
        completion_command: str = "/msg ",
        request_timeout: float = 2.5,
        inter_prefix_delay: float = 0.2,
    ) -> None:
        self._supervisor = supervisor
        self.prefixes = tuple(prefixes)
        self.completion_command = completion_command
        self.request_timeout = request_timeout
        self.inter_prefix_delay = inter_prefix_delay

    async def enumerate(
        self,
        prefixes: Iterable[str] | None = None,
        inter_prefix_delay: float | None = None,
    ) -> List[str]:
        """Sweep ``prefixes`` and return the de-duplicated online nicknames.

        Raises:
            NotReadyError: Before any request when the session is not READY,
                or as soon as readiness is lost during the sweep.
        """
        session = self._supervisor.require_session()
        sweep = tuple(prefixes) if prefixes is not None else self.prefixes
        delay = self.inter_prefix_delay if inter_prefix_delay is None else inter_prefix_delay
        own_name = self._supervisor.username.lower()

        found: Set[str] = set()
        timeouts = 0
        for index, prefix in enumerate(sweep):
            if index and delay > 0:
                await asyncio.sleep(delay)
            if not self._supervisor.is_ready():
                raise NotReadyError("Game session lost readiness during the player sweep")

            text = f"{self.completion_command}{prefix}"
            try:
                matches = await session.request_completions(text, self.request_timeout)
            except ProtocolTimeoutError:
                timeouts += 1
                logger.debug("[ENUMERATOR] No answer for %r", text)
                continue
            except ConnectionLostError as exc:
                raise NotReadyError(f"Connection lost during the player sweep: {exc}") from exc

            found.update(name for name in extract_names(matches) if name.lower() != own_name)

        if not self._supervisor.is_ready():
            raise NotReadyError("Game session lost readiness during the player sweep")

        players = sorted(found, key=lambda name: (name.lower(), name))
        logger.info(
            "[ENUMERATOR] Sweep of %d prefixes found %d players (%d timeouts)",
            len(sweep),
            len(players),
            timeouts,
        )
        return players
