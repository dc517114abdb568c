"""Tests for field formatting and front-matter construction."""

from __future__ import annotations

import pytest
from conftest import make_record

from contacts_sync.config import Settings
from contacts_sync.exceptions import RecordError
from contacts_sync.sync.formatter import resolve_label, strip_protocol
from contacts_sync.sync.frontmatter import (
    RESERVED_KEY,
    build_frontmatter,
    render_record,
    stored_record,
)
from contacts_sync.sync.models import Field


def _fields(*specs: dict) -> list[Field]:
    return [Field(**spec) for spec in specs]


def _formatted(fields: list[Field], settings: Settings) -> dict:
    """Front matter built from *fields*, without the ``name`` seed."""
    frontmatter = build_frontmatter(fields, "Ada Lovelace", settings)
    assert frontmatter.pop("name") == "Ada Lovelace"
    return frontmatter


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


class TestResolveLabel:
    def test_grouped_label(self):
        fields = _fields(
            {"key": "tel", "meta": {"group": "item4"}, "value": "00 000003"},
            {"key": "xAblabel", "meta": {"group": "item4"}, "value": "_$!<Mobile>!$_"},
        )
        assert resolve_label(fields[0], fields) == "Mobile"

    def test_grouped_without_label(self):
        fields = _fields({"key": "tel", "meta": {"group": "item4"}, "value": "1"})
        assert resolve_label(fields[0], fields) is None

    def test_reserved_type_tags_skipped(self):
        fields = _fields({"key": "tel", "meta": {"type": ["cell", "voice", "pref"]}, "value": "1"})
        assert resolve_label(fields[0], fields) is None

    def test_iphone_capitalisation(self):
        fields = _fields({"key": "tel", "meta": {"type": ["iphone", "cell"]}, "value": "1"})
        assert resolve_label(fields[0], fields) == "iPhone"

    def test_first_meaningful_type(self):
        fields = _fields({"key": "email", "meta": {"type": ["internet", "work"]}, "value": "a@b"})
        assert resolve_label(fields[0], fields) == "Work"


def test_strip_protocol():
    assert strip_protocol("xmpp:ada@jabber.org") == "ada@jabber.org"
    assert strip_protocol("x-apple:ada") == "ada"
    assert strip_protocol("ada") == "ada"


# ---------------------------------------------------------------------------
# build_frontmatter: field formatting
# ---------------------------------------------------------------------------


class TestFieldFormatting:
    def test_telephone_without_labels(self):
        fields = _fields(
            {"key": "tel", "meta": {"type": ["cell", "voice", "pref"]}, "value": "12345678"},
            {"key": "tel", "meta": {"type": ["iphone", "cell", "voice"]}, "value": "87654321"},
            {"key": "tel", "meta": {"group": "item4"}, "value": "00 000003"},
        )
        assert _formatted(fields, Settings()) == {
            "telephone": ["12345678", "87654321", "00 000003"]
        }

    def test_telephone_with_labels(self):
        fields = _fields(
            {"key": "tel", "meta": {"type": ["cell", "voice", "pref"]}, "value": "12345678"},
            {"key": "tel", "meta": {"type": ["iphone", "cell", "voice"]}, "value": "87654321"},
            {"key": "tel", "meta": {"group": "item4"}, "value": "00 000003"},
            {"key": "xAblabel", "meta": {"group": "item4"}, "value": "_$!<Other>!$_"},
        )
        result = _formatted(fields, Settings(tel_labels=True))
        assert result["telephone"] == ["12345678", "iPhone: 87654321", "Other: 00 000003"]

    def test_email_and_url_toggles_are_independent(self):
        fields = _fields(
            {"key": "email", "meta": {"type": "home"}, "value": "a@b.c"},
            {"key": "url", "meta": {"type": "home"}, "value": "https://b.c"},
        )
        result = _formatted(fields, Settings(email_labels=True))
        assert result["email"] == ["Home: a@b.c"]
        assert result["url"] == ["https://b.c"]

    def test_org(self):
        fields = _fields({"key": "org", "value": ["Company", "departement"]})
        assert _formatted(fields, Settings()) == {
            "organization": "Company",
            "departement": "departement",
        }

    def test_address(self):
        fields = _fields(
            {"key": "adr", "meta": {"type": "home"}, "value": ["", "", "1 Main St", "Springfield", "", "12345", "USA"]}
        )
        assert _formatted(fields, Settings(address_labels=True)) == {
            "addresses": ["1 Main St, Springfield, 12345, USA"]
        }

    def test_birthday(self):
        fields = _fields({"key": "bday", "meta": {"value": "date"}, "type": "date", "value": "1604-03-03"})
        assert _formatted(fields, Settings()) == {"birthday": "1604-03-03"}

    def test_pass_through_keys(self):
        fields = _fields(
            {"key": "nickname", "value": "nickname"},
            {"key": "note", "value": "A lot of notes"},
        )
        assert _formatted(fields, Settings()) == {
            "nickname": "nickname",
            "note": "A lot of notes",
        }

    def test_repeated_pass_through_key_becomes_list(self):
        fields = _fields({"key": "categories", "value": "a"}, {"key": "categories", "value": "b"})
        assert _formatted(fields, Settings()) == {"categories": ["a", "b"]}

    def test_related_names(self):
        fields = _fields(
            {"key": "xAbrelatednames", "meta": {"group": "item1"}, "value": "Jane"},
            {"key": "xAblabel", "meta": {"group": "item1"}, "value": "_$!<Sister>!$_"},
        )
        assert _formatted(fields, Settings())["related names"] == ["[[Jane]]"]
        assert _formatted(fields, Settings(related_labels=True))["related names"] == [
            "[[Jane|Sister: Jane]]"
        ]

    def test_instant_message(self):
        fields = _fields(
            {"key": "impp", "meta": {"xServiceType": "Jabber"}, "value": "xmpp:ada@jabber.org"}
        )
        assert _formatted(fields, Settings()) == {"instant message": ["Jabber: ada@jabber.org"]}

    def test_social_profile(self):
        fields = _fields(
            {"key": "xSocialprofile", "meta": {"type": "twitter"}, "value": "x-apple:ada"}
        )
        assert _formatted(fields, Settings()) == {"social profile": ["Twitter: ada"]}

    def test_date_label(self):
        fields = _fields(
            {"key": "xAbdate", "meta": {"group": "item2"}, "value": "2001-01-01"},
            {"key": "xAblabel", "meta": {"group": "item2"}, "value": "_$!<Anniversary>!$_"},
        )
        assert _formatted(fields, Settings()) == {"date": ["Anniversary: 2001-01-01"]}

    def test_date_ignores_type_tags(self):
        fields = _fields(
            {"key": "xAbdate", "meta": {"type": ["anniversary"]}, "value": "2001-01-01"},
            {"key": "xAbdate", "meta": {"group": "item3"}, "value": "2002-02-02"},
        )
        assert _formatted(fields, Settings()) == {"date": ["2001-01-01", "2002-02-02"]}

    def test_excluded_keys_are_case_insensitive(self):
        fields = _fields(
            {"key": "xAblabel", "value": "_$!<Other>!$_"},
            {"key": "prodid", "value": "-//Apple Inc.//iCloud Web Address Book//EN"},
            {"key": "nickname", "value": "Nick"},
        )
        assert _formatted(fields, Settings()) == {"nickname": "Nick"}
        assert _formatted(fields, Settings(excluded_keys="NICKNAME")) == {
            "xAblabel": "_$!<Other>!$_",
            "prodid": "-//Apple Inc.//iCloud Web Address Book//EN",
        }


# ---------------------------------------------------------------------------
# Front matter
# ---------------------------------------------------------------------------


class TestFrontmatter:
    def test_name_comes_first(self):
        fields = _fields({"key": "email", "value": "a@b.c"}, {"key": "fn", "value": "Ada"})
        fm = build_frontmatter(fields, "Ada", Settings())
        assert list(fm) == ["name", "email"]

    def test_render_record(self):
        name, fm = render_record(make_record("Ada Lovelace", "EMAIL:ada@example.org"), Settings())
        assert name == "Ada Lovelace"
        assert fm == {"name": "Ada Lovelace", "email": ["ada@example.org"]}
        assert RESERVED_KEY not in fm

    def test_stored_record_round_trip(self):
        record = make_record("Ada Lovelace")
        assert stored_record({RESERVED_KEY: record.to_json()}) == record

    def test_stored_record_accepts_mapping(self):
        record = make_record("Ada Lovelace")
        assert stored_record({RESERVED_KEY: record.model_dump()}) == record

    @pytest.mark.parametrize("frontmatter", [None, {}, {"name": "Ada"}])
    def test_stored_record_absent(self, frontmatter):
        assert stored_record(frontmatter) is None

    def test_stored_record_unreadable(self):
        with pytest.raises(RecordError, match=RESERVED_KEY):
            stored_record({RESERVED_KEY: "{not json"})
