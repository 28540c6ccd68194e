"""
AbilityGate Policy.

Capability check evaluated before an ability runs.
"""

from __future__ import annotations

from typing import Callable, Optional, Tuple

from sitegate.shared.gate import GateLogger
from sitegate.AbilityGate.models import AbilityDefinition
from sitegate.FileSystemGate.models import Actor

_log = GateLogger.get("AbilityGate")


class CapabilityPolicy:
    """
    Decides whether an actor may run an ability.

    The authorizer is the host's capability check; by default the actor's
    own capability set is consulted.
    """

    def __init__(self, authorizer: Optional[Callable[[Actor, str], bool]] = None):
        self._authorizer = authorizer or (lambda actor, capability: actor.can(capability))

    def check(self, ability: AbilityDefinition, actor: Actor) -> Tuple[bool, Optional[str]]:
        """
        Check if the actor may execute the ability.

        Args:
            ability: Ability definition
            actor: Caller identity

        Returns:
            Tuple of (allowed, reason)
        """
        capability = ability.required_capability
        if self._authorizer(actor, capability):
            return True, None

        _log.warning(
            f"Denied {ability.name} for {actor.email or actor.user_id}: missing '{capability}'"
        )
        return False, f"Sorry, you are not allowed to use {ability.name}. Requires the '{capability}' capability."


__all__ = ["CapabilityPolicy"]
