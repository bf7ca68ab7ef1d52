"""
Tests for NFT Description Model and Validation
"""

import json
from datetime import datetime, timezone

import pytest

from nft.metadata import (
    DescriptionValidator,
    NFTAttribute,
    NFTDescription,
    NFTDescriptionError,
    NFT_PROTOCOL
)
from storage.exceptions import EncodeError
from storage.records import MetadataMap


def make_description(**overrides) -> NFTDescription:
    fields = dict(
        name="Sunset",
        description="NFT of sunset.jpg",
        image="https://bico.media/" + "a" * 64,
        creator="alice",
        attributes=(NFTAttribute("File Type", "image/jpeg"), NFTAttribute("File Size", 2048)),
        properties={"files": [{"uri": "https://bico.media/" + "a" * 64, "type": "image/jpeg"}]},
        content_hash="b" * 64,
        created_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    )
    fields.update(overrides)
    return NFTDescription(**fields)


class TestNFTAttribute:

    def test_to_dict(self):
        assert NFTAttribute("Size", 10).to_dict() == {"trait_type": "Size", "value": 10}

    def test_display_type(self):
        attr = NFTAttribute("Created", "2024-01-01", display_type="date")
        assert attr.to_dict()["display_type"] == "date"
        assert NFTAttribute.from_dict(attr.to_dict()) == attr


class TestNFTDescription:

    def test_to_dict(self):
        data = make_description().to_dict()

        assert data["name"] == "Sunset"
        assert data["protocol"] == NFT_PROTOCOL
        assert data["created_at"] == "2024-01-02T03:04:05+00:00"
        assert data["attributes"][1] == {"trait_type": "File Size", "value": 2048}
        assert "royalty_percentage" not in data

    def test_json_is_compact(self):
        text = make_description().to_json()
        assert ", " not in text
        assert json.loads(text)["creator"] == "alice"

    def test_json_round_trip(self):
        description = make_description(royalty_percentage=2.5, max_supply=1)
        assert NFTDescription.from_json(description.to_json()) == description

    def test_attributes_from_dicts(self):
        description = make_description(attributes=[{"trait_type": "Mood", "value": "calm"}])
        assert description.attributes == (NFTAttribute("Mood", "calm"),)

    def test_metadata_map(self):
        record = make_description().to_metadata_map("bitcoin-drive")

        assert record.entries[0] == ("app", "bitcoin-drive")
        assert record.entries[1] == ("type", "nft")
        assert NFTDescription.from_metadata_map(record) == make_description()

    def test_metadata_map_without_nft(self):
        with pytest.raises(ValueError, match="does not carry"):
            NFTDescription.from_metadata_map(MetadataMap.from_pairs([("type", "post")]))

    def test_frozen(self):
        with pytest.raises(AttributeError):
            make_description().name = "changed"


class TestDescriptionValidator:

    def setup_method(self):
        self.validator = DescriptionValidator()

    def test_valid(self):
        assert self.validator.errors(make_description()) == []
        self.validator.validate(make_description())

    def test_empty_name(self):
        with pytest.raises(NFTDescriptionError, match="name"):
            self.validator.validate(make_description(name=""))

    def test_image_must_be_address(self):
        errors = self.validator.errors(make_description(image="not a url"))
        assert any(error.startswith("image") for error in errors)

    def test_royalty_range(self):
        with pytest.raises(NFTDescriptionError, match="royalty_percentage"):
            self.validator.validate(make_description(royalty_percentage=150))

    def test_content_hash_format(self):
        with pytest.raises(NFTDescriptionError, match="content_hash"):
            self.validator.validate(make_description(content_hash="xyz"))

    def test_files_require_uri(self):
        errors = self.validator.errors(make_description(properties={"files": [{"type": "image/png"}]}))
        assert errors

    def test_error_is_encode_error(self):
        with pytest.raises(EncodeError):
            self.validator.validate(make_description(max_supply=0))

    def test_validates_plain_dicts(self):
        data = make_description().to_dict()
        del data["image"]
        assert self.validator.errors(data) == ["root: 'image' is a required property"]
