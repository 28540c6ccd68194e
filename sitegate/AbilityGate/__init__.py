"""
AbilityGate - named abilities over the guarded filesystem.

Exposes each FileSystemGate operation as a named ability with a closed
JSON-schema argument contract and an administrative capability check.

## Usage

```python
from sitegate import AbilityGate

AbilityGate.initialize()

# Discover abilities
for ability in AbilityGate.list_abilities():
    print(ability.name, ability.get_json_schema())

# Execute one
result = AbilityGate.execute(
    "filesystem/write-file",
    {"path": "wp-content/notes.txt", "content": "Hello"},
    actor=current_actor,
)
```

Results are plain dicts:

```json
{"success": true, "operation": "write", "path": "/srv/site/wp-content/notes.txt", "data": {"bytes": 5}}
```
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from sitegate.shared.gate import GateLogger, build_health_status

# Models
from sitegate.AbilityGate.models import (
    AbilityAnnotations,
    AbilityDefinition,
    ArgSchema,
    PolicyClass,
)

# Registry
from sitegate.AbilityGate.registry import FILESYSTEM_ABILITIES, AbilityRegistry

# Protocol
from sitegate.AbilityGate.protocol import apply_defaults, validate_args

# Policy
from sitegate.AbilityGate.policy import CapabilityPolicy

from sitegate.FileSystemGate import FileSystemGate
from sitegate.FileSystemGate.models import Actor, ErrorKind

_log = GateLogger.get("AbilityGate")
_initialized = False


# =============================================================================
# Public API
# =============================================================================


def initialize() -> bool:
    """
    Initialize AbilityGate.

    Registers the filesystem abilities.

    Returns:
        True if initialization successful
    """
    global _initialized

    if _initialized:
        return True

    AbilityRegistry.initialize()
    _initialized = True
    _log.info("AbilityGate initialized")
    return True


def is_initialized() -> bool:
    """Check if AbilityGate is initialized."""
    return _initialized


def reset() -> None:
    """Reset module state (for testing)."""
    global _initialized
    AbilityRegistry.reset()
    _initialized = False


def _failure(message: str, kind: ErrorKind) -> Dict[str, Any]:
    return {"success": False, "message": message, "error": message, "error_kind": kind.value}


def execute(name: str, args: Optional[Dict[str, Any]] = None, actor: Optional[Actor] = None) -> Dict[str, Any]:
    """
    Execute an ability.

    The capability check runs first, then argument validation; neither
    touches the filesystem. Valid calls are dispatched to the FileSystemGate
    method named by the ability.

    Args:
        name: Ability name, e.g. "filesystem/read-file"
        args: Ability arguments
        actor: Caller identity (default: the gate's actor provider)

    Returns:
        Result dict with success, message and error_kind on failure
    """
    initialize()

    ability = AbilityRegistry.get_ability(name)
    if ability is None:
        return _failure(f"Unknown ability: {name}", ErrorKind.INVALID_INPUT)

    try:
        operations = FileSystemGate.for_actor(actor)
    except RuntimeError as e:
        _log.error(f"Cannot execute {name}: {e}")
        return _failure(str(e), ErrorKind.IO_FAILURE)

    caller = operations.actor_provider()
    allowed, reason = CapabilityPolicy(operations.authorizer).check(ability, caller)
    if not allowed:
        return _failure(reason, ErrorKind.ACCESS_DENIED)

    args = args if args is not None else {}
    valid, error = validate_args(ability, args)
    if not valid:
        return _failure(f"Invalid arguments: {error}", ErrorKind.INVALID_INPUT)

    method = getattr(operations, ability.method)
    result = method(**apply_defaults(ability, args))
    return result.to_dict()


def list_abilities(policy_filter: Optional[Set[PolicyClass]] = None) -> List[AbilityDefinition]:
    """
    List available abilities.

    Args:
        policy_filter: Filter by policy classes

    Returns:
        List of ability definitions
    """
    initialize()
    return AbilityRegistry.list_abilities(policy_filter)


def list_ability_names(policy_filter: Optional[Set[PolicyClass]] = None) -> List[str]:
    """List available ability names."""
    initialize()
    return AbilityRegistry.list_ability_names(policy_filter)


def get_ability(name: str) -> Optional[AbilityDefinition]:
    """Get an ability by name."""
    initialize()
    return AbilityRegistry.get_ability(name)


def is_healthy() -> bool:
    """Check if AbilityGate is operational."""
    return _initialized and len(AbilityRegistry.list_abilities()) > 0


def get_health_status() -> dict:
    """Get detailed health status."""
    ability_count = len(AbilityRegistry.list_abilities()) if _initialized else 0

    return build_health_status(
        gate_name="AbilityGate",
        initialized=_initialized,
        dependencies=["FileSystemGate"],
        checks={
            "registry_loaded": _initialized,
            "abilities_available": ability_count > 0,
            "filesystem_ready": FileSystemGate.is_initialized(),
        },
        details={"ability_count": ability_count},
    )


def get_dependencies() -> List[str]:
    """List AbilityGate dependencies."""
    return ["FileSystemGate"]


def get_info() -> dict:
    """
    Get documentation for AbilityGate.

    Lists every ability with its label, annotations and argument schema.
    """
    initialize()

    return {
        "gate": "AbilityGate",
        "version": "1.0",
        "purpose": "Named filesystem abilities with JSON-schema argument contracts. Every ability requires an administrative capability, checked before any filesystem work.",

        "call_format": {
            "name": "string - ability name (e.g., 'filesystem/read-file')",
            "args": "object - ability arguments; unknown keys are rejected",
            "actor": "Actor - caller identity (optional)",
        },

        "result_format": {
            "success": "boolean",
            "message": "string - human-readable outcome",
            "error_kind": "string - invalid_input, not_found, access_denied, security_blocked, already_exists, io_failure or backup_failure",
            "data": "object - operation payload",
        },

        "abilities": {
            ability.name: {
                "label": ability.label,
                "description": ability.description,
                "annotations": ability.annotations.model_dump(),
                "input_schema": ability.get_json_schema(),
            }
            for ability in AbilityRegistry.list_abilities()
        },

        "best_practices": [
            "Call filesystem/get-changelog after losing context to see recent changes",
            "Pass context on mutating abilities so the change log explains itself",
            "Check success before using data",
        ],
    }


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Initialization
    "initialize",
    "is_initialized",
    "is_healthy",
    "get_health_status",
    "get_dependencies",
    "get_info",
    # Execution
    "execute",
    # Models
    "PolicyClass",
    "ArgSchema",
    "AbilityAnnotations",
    "AbilityDefinition",
    # Registry
    "AbilityRegistry",
    "FILESYSTEM_ABILITIES",
    "list_abilities",
    "list_ability_names",
    "get_ability",
    # Protocol
    "validate_args",
    "apply_defaults",
    # Policy
    "CapabilityPolicy",
]
