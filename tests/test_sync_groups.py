"""Tests for group allow-list filtering."""

from __future__ import annotations

from conftest import make_group, make_record

from contacts_sync.sync.groups import filter_by_groups
from contacts_sync.sync.models import RemoteRecord

ADA = make_record("Ada", uid="uid-ada")
ADAM = make_record("Adam", uid="uid-ada-m")
BEA = make_record("Bea", uid="uid-bea")
BROKEN = RemoteRecord(url="https://dav.example.com/card/x.vcf", etag="1", data="BEGIN:VCARD\r\nBROKEN\r\n")


def test_no_allow_list_drops_only_group_markers():
    records = [ADA, make_group("friends", "uid-ada"), BEA]
    assert filter_by_groups(records, []) == [ADA, BEA]


def test_allow_list_keeps_members():
    records = [ADA, BEA, make_group("friends", "uid-bea")]
    assert filter_by_groups(records, ["friends"]) == [BEA]


def test_membership_is_exact_uid_match():
    records = [ADA, ADAM, make_group("friends", "uid-ada-m")]
    assert filter_by_groups(records, ["friends"]) == [ADAM]


def test_several_groups_union():
    records = [ADA, BEA, make_group("a", "uid-ada"), make_group("b", "uid-bea")]
    assert filter_by_groups(records, ["a", "b"]) == [ADA, BEA]


def test_unlisted_group_members_dropped():
    records = [ADA, make_group("friends", "uid-ada")]
    assert filter_by_groups(records, ["family"]) == []


def test_group_without_members():
    assert filter_by_groups([ADA, BEA, make_group("empty")], ["empty"]) == []


def test_unparseable_record_kept_without_allow_list():
    assert filter_by_groups([BROKEN, ADA], []) == [BROKEN, ADA]
    assert filter_by_groups([BROKEN, make_group("g", "uid-ada"), ADA], ["g"]) == [ADA]
