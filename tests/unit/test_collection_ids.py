from __future__ import annotations

import pytest

from vecthare_backends.collection_ids import Tenant, decode_collection_id, encode_collection_id


@pytest.mark.parametrize(
    ("tenant_type", "source_id"),
    [
        ("chat", "a1b2c3d4-e5f6-7890-abcd-ef1234567890"),
        ("lorebook", "world_info_123"),
        ("doc", "char:456:extra"),
    ],
)
def test_current_format_round_trips(tenant_type, source_id):
    assert decode_collection_id(encode_collection_id(tenant_type, source_id)) == (tenant_type, source_id)


def test_current_format_keeps_colons_in_source_id():
    assert decode_collection_id("vh:chat:abc:def") == Tenant(type="chat", source_id="abc:def")


def test_legacy_format_keeps_underscores_in_source_id():
    assert decode_collection_id("vecthare_doc_char_456") == Tenant(type="doc", source_id="char_456")


@pytest.mark.parametrize("raw", ["garbage", "vh:chat", "vecthare_doc", "", "other:chat:x"])
def test_unknown_format_falls_back_to_chat(raw):
    tenant = decode_collection_id(raw)
    assert tenant.type == "chat"
    assert tenant.source_id == raw


def test_tenant_filters_use_wire_names():
    assert Tenant("doc", "char_456").as_filters() == {"type": "doc", "sourceId": "char_456"}


def test_encode_rejects_type_with_delimiter():
    with pytest.raises(ValueError):
        encode_collection_id("bad:type", "x")
