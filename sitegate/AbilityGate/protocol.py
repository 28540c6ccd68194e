"""
AbilityGate argument handling.

Validates ability arguments against their schema and fills in defaults.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from sitegate.AbilityGate.models import AbilityDefinition


def validate_args(ability: AbilityDefinition, args: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate arguments against an ability's schema.

    Ability schemas are closed: arguments the schema does not name are
    rejected.

    Args:
        ability: Ability definition with schema
        args: Arguments to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(args, dict):
        return False, f"Arguments must be an object, got {type(args).__name__}"

    schema = ability.args_schema

    # Check required arguments
    for arg_name, arg_schema in schema.items():
        if arg_schema.required and arg_name not in args:
            return False, f"Missing required argument: {arg_name}"

    for arg_name, value in args.items():
        if arg_name not in schema:
            return False, f"Unknown argument: {arg_name}"

        arg_schema = schema[arg_name]
        expected_type = arg_schema.type

        if value is None and not arg_schema.required:
            continue

        # bool is an int subclass; keep them apart
        if expected_type == "string" and not isinstance(value, str):
            return False, f"Argument {arg_name} must be string, got {type(value).__name__}"
        elif expected_type == "integer" and (not isinstance(value, int) or isinstance(value, bool)):
            return False, f"Argument {arg_name} must be integer, got {type(value).__name__}"
        elif expected_type == "number" and (not isinstance(value, (int, float)) or isinstance(value, bool)):
            return False, f"Argument {arg_name} must be number, got {type(value).__name__}"
        elif expected_type == "boolean" and not isinstance(value, bool):
            return False, f"Argument {arg_name} must be boolean, got {type(value).__name__}"
        elif expected_type == "array" and not isinstance(value, list):
            return False, f"Argument {arg_name} must be array, got {type(value).__name__}"
        elif expected_type == "object" and not isinstance(value, dict):
            return False, f"Argument {arg_name} must be object, got {type(value).__name__}"

        # Enum validation
        if arg_schema.enum and value not in arg_schema.enum:
            return False, f"Argument {arg_name} must be one of {arg_schema.enum}"

    return True, None


def apply_defaults(ability: AbilityDefinition, args: Dict[str, Any]) -> Dict[str, Any]:
    """Merge schema defaults under the supplied arguments, dropping explicit Nones."""
    merged = ability.defaults()
    merged.update({k: v for k, v in args.items() if v is not None})
    return merged


__all__ = [
    "validate_args",
    "apply_defaults",
]
