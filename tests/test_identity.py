"""Tests for DID document parsing."""

import pytest

from bsky_bridge.errors import IdentityError
from bsky_bridge.identity import parse_did_doc

from bsky_fakes import ALICE, NEW_PDS, did_doc


class TestParseDIDDoc:
    def test_pds_endpoint(self):
        ident = parse_did_doc(did_doc(pds=NEW_PDS))
        assert ident.did == ALICE
        assert ident.handle == "alice.test"
        assert ident.pds_endpoint() == NEW_PDS

    def test_absolute_service_id(self):
        doc = did_doc()
        doc["service"][0]["id"] = f"{ALICE}#atproto_pds"
        doc["service"][0]["serviceEndpoint"] = NEW_PDS + "/"
        assert parse_did_doc(doc).pds_endpoint() == NEW_PDS

    def test_wrong_service_type(self):
        doc = did_doc()
        doc["service"][0]["type"] = "SomethingElse"
        assert parse_did_doc(doc).pds_endpoint() == ""

    def test_no_services(self):
        doc = did_doc()
        del doc["service"]
        assert parse_did_doc(doc).pds_endpoint() == ""

    def test_non_http_endpoint(self):
        doc = did_doc(pds="ftp://pds.example.com")
        assert parse_did_doc(doc).pds_endpoint() == ""

    @pytest.mark.parametrize("doc", [None, "did:plc:abc", [], {"service": []}])
    def test_malformed(self, doc):
        with pytest.raises(IdentityError):
            parse_did_doc(doc)
