"""
AbilityGate Models.

Defines ability definitions and their argument contracts.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PolicyClass(str, Enum):
    """Effect classes for abilities."""

    READ_ONLY = "read_only"  # No side effects
    WRITE = "write"  # Creates/modifies files
    DESTRUCTIVE = "destructive"  # Can replace or remove files


class ArgSchema(BaseModel):
    """JSON Schema for an ability argument."""

    type: str = "string"
    description: str = ""
    required: bool = True
    default: Optional[Any] = None
    enum: Optional[List[Any]] = None
    items: Optional[Dict[str, Any]] = None  # For array types


class AbilityAnnotations(BaseModel):
    """Behaviour hints published with an ability."""

    readonly: bool = False
    destructive: bool = False
    idempotent: bool = False


class AbilityDefinition(BaseModel):
    """Complete ability definition for the registry."""

    name: str = Field(description="Ability name, e.g., filesystem/read-file")
    label: str = Field(description="Short human-readable title")
    description: str = Field(description="Human-readable description")
    category: str = Field(default="site")
    gate: str = Field(default="FileSystemGate", description="Owning gate name")
    method: str = Field(description="Method name on the gate, e.g., read_file")
    policy_class: PolicyClass = Field(default=PolicyClass.READ_ONLY)
    required_capability: str = Field(default="manage_options")
    annotations: AbilityAnnotations = Field(default_factory=AbilityAnnotations)
    args_schema: Dict[str, ArgSchema] = Field(
        default_factory=dict, description="Argument schemas"
    )

    def get_json_schema(self) -> Dict[str, Any]:
        """Generate JSON Schema for this ability's arguments."""
        properties = {}
        required = []

        for arg_name, arg_schema in self.args_schema.items():
            prop = {"type": arg_schema.type, "description": arg_schema.description}

            if arg_schema.enum:
                prop["enum"] = arg_schema.enum
            if arg_schema.items:
                prop["items"] = arg_schema.items
            if arg_schema.default is not None:
                prop["default"] = arg_schema.default

            properties[arg_name] = prop

            if arg_schema.required:
                required.append(arg_name)

        return {
            "type": "object",
            "properties": properties,
            "required": required,
            "additionalProperties": False,
        }

    def defaults(self) -> Dict[str, Any]:
        """Default values for optional arguments."""
        return {
            name: schema.default
            for name, schema in self.args_schema.items()
            if not schema.required and schema.default is not None
        }

    def to_dict(self) -> Dict[str, Any]:
        """Public description, as published to ability clients."""
        return {
            "name": self.name,
            "label": self.label,
            "description": self.description,
            "category": self.category,
            "input_schema": self.get_json_schema(),
            "permission": self.required_capability,
            "meta": {"annotations": self.annotations.model_dump()},
        }


__all__ = [
    "PolicyClass",
    "ArgSchema",
    "AbilityAnnotations",
    "AbilityDefinition",
]
