"""
Bitcoin Drive - NFT Containers

This package mints .nft tokens for stored files: the token description model,
its schema validation, and the builder that pays for the description record.
"""

from .metadata import (
    NFTAttribute,
    NFTDescription,
    NFTDescriptionError,
    DescriptionValidator,
    NFT_DESCRIPTION_SCHEMA,
    NFT_PROTOCOL
)

from .container import (
    NFTContainerBuilder,
    NFTOptions,
    NFTResult
)

__version__ = "1.0.0"

__all__ = [
    # Description model
    "NFTAttribute",
    "NFTDescription",
    "NFTDescriptionError",
    "DescriptionValidator",
    "NFT_DESCRIPTION_SCHEMA",
    "NFT_PROTOCOL",

    # Builder
    "NFTContainerBuilder",
    "NFTOptions",
    "NFTResult",
]
