"""
Bitcoin Drive - NFT Description

This module defines the .nft token description written on-chain after a file
upload, its JSON schema validation, and conversion to and from the MAP record
that carries it.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from jsonschema import Draft7Validator

from storage.exceptions import EncodeError
from storage.records import MetadataMap


NFT_PROTOCOL = ".nft"
MAP_TYPE_NFT = "nft"


class NFTDescriptionError(EncodeError):
    """Raised when an NFT description fails validation."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("Invalid NFT description: " + "; ".join(errors))


@dataclass(frozen=True)
class NFTAttribute:
    """Individual NFT trait."""

    trait_type: str
    value: Union[str, int, float, bool]
    display_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        result = {
            "trait_type": self.trait_type,
            "value": self.value
        }
        if self.display_type:
            result["display_type"] = self.display_type
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NFTAttribute':
        return cls(
            trait_type=data["trait_type"],
            value=data["value"],
            display_type=data.get("display_type")
        )


@dataclass(frozen=True)
class NFTDescription:
    """
    Token description pointing at a stored file.

    ``image`` and every entry of ``properties["files"]`` hold the content
    address of the uploaded file (for chunked files, the manifest's address).
    """

    name: str
    description: str
    image: str
    creator: Optional[str] = None
    attributes: Tuple[NFTAttribute, ...] = ()
    properties: Dict[str, Any] = field(default_factory=dict)
    royalty_percentage: Optional[float] = None
    max_supply: Optional[int] = None
    content_hash: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    protocol: str = NFT_PROTOCOL

    def __post_init__(self):
        object.__setattr__(self, 'attributes', tuple(
            NFTAttribute.from_dict(attr) if isinstance(attr, dict) else attr
            for attr in self.attributes
        ))

    @property
    def file_reference(self) -> str:
        return self.image

    def get_attribute(self, trait_type: str) -> Optional[NFTAttribute]:
        """Get attribute by trait type."""
        for attr in self.attributes:
            if attr.trait_type == trait_type:
                return attr
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for JSON serialization."""
        result = {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "protocol": self.protocol,
            "created_at": self.created_at.isoformat()
        }

        if self.creator is not None:
            result["creator"] = self.creator
        if self.attributes:
            result["attributes"] = [attr.to_dict() for attr in self.attributes]
        if self.properties:
            result["properties"] = self.properties
        if self.royalty_percentage is not None:
            result["royalty_percentage"] = self.royalty_percentage
        if self.max_supply is not None:
            result["max_supply"] = self.max_supply
        if self.content_hash:
            result["content_hash"] = self.content_hash

        return result

    def to_json(self, indent: Optional[int] = None) -> str:
        """Convert to JSON string (compact unless indent is given)."""
        separators = None if indent is not None else (',', ':')
        return json.dumps(self.to_dict(), indent=indent, separators=separators, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NFTDescription':
        """Create NFTDescription from dictionary."""
        created_at = datetime.now(timezone.utc)
        if 'created_at' in data:
            created_at = datetime.fromisoformat(data['created_at'].replace('Z', '+00:00'))

        return cls(
            name=data['name'],
            description=data['description'],
            image=data['image'],
            creator=data.get('creator'),
            attributes=tuple(NFTAttribute.from_dict(a) for a in data.get('attributes', [])),
            properties=data.get('properties', {}),
            royalty_percentage=data.get('royalty_percentage'),
            max_supply=data.get('max_supply'),
            content_hash=data.get('content_hash'),
            created_at=created_at,
            protocol=data.get('protocol', NFT_PROTOCOL)
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'NFTDescription':
        """Create NFTDescription from JSON string."""
        return cls.from_dict(json.loads(json_str))

    def to_metadata_map(self, app_name: str) -> MetadataMap:
        """MAP record carrying this description."""
        return MetadataMap.from_pairs([
            ("app", app_name),
            ("type", MAP_TYPE_NFT),
            ("data", self.to_json())
        ])

    @classmethod
    def from_metadata_map(cls, record: MetadataMap) -> 'NFTDescription':
        """Read a description back from a MAP record (last write wins)."""
        values = record.as_dict()
        if values.get("type") != MAP_TYPE_NFT or "data" not in values:
            raise ValueError("MAP record does not carry an NFT description")
        return cls.from_json(values["data"])


# JSON schema for NFT descriptions
NFT_DESCRIPTION_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Bitcoin Drive NFT Description",
    "type": "object",
    "required": ["name", "description", "image", "protocol", "created_at"],
    "properties": {
        "name": {"type": "string", "minLength": 1, "maxLength": 200},
        "description": {"type": "string", "maxLength": 5000},
        "image": {"type": "string", "pattern": "^(https?|b|bcat)://"},
        "protocol": {"const": NFT_PROTOCOL},
        "created_at": {"type": "string"},
        "creator": {"type": "string", "minLength": 1},
        "attributes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["trait_type", "value"],
                "properties": {
                    "trait_type": {"type": "string", "minLength": 1},
                    "value": {"type": ["string", "number", "boolean"]},
                    "display_type": {"type": "string"}
                }
            }
        },
        "properties": {
            "type": "object",
            "properties": {
                "files": {
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "required": ["uri", "type"],
                        "properties": {
                            "uri": {"type": "string"},
                            "type": {"type": "string"}
                        }
                    }
                }
            }
        },
        "royalty_percentage": {"type": "number", "minimum": 0, "maximum": 100},
        "max_supply": {"type": "integer", "minimum": 1},
        "content_hash": {"type": "string", "pattern": "^[0-9a-f]{64}$"}
    }
}


class DescriptionValidator:
    """Validates NFT descriptions against NFT_DESCRIPTION_SCHEMA."""

    def __init__(self, schema: Optional[Dict[str, Any]] = None):
        self.validator = Draft7Validator(schema or NFT_DESCRIPTION_SCHEMA)

    def errors(self, description: Union[NFTDescription, Dict[str, Any]]) -> List[str]:
        """Return human-readable schema violations (empty when valid)."""
        data = description.to_dict() if isinstance(description, NFTDescription) else description
        messages = []
        for error in sorted(self.validator.iter_errors(data), key=lambda e: list(e.path)):
            location = ".".join(str(p) for p in error.path) or "root"
            messages.append(f"{location}: {error.message}")
        return messages

    def validate(self, description: Union[NFTDescription, Dict[str, Any]]) -> None:
        """
        Validate a description.

        Raises:
            NFTDescriptionError: If the description violates the schema
        """
        errors = self.errors(description)
        if errors:
            raise NFTDescriptionError(errors)
