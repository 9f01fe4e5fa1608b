"""Unit tests for the remote registry."""

from __future__ import annotations

import pytest

from pakman.core.errors import DuplicateError, NotFoundError, ValidationError
from pakman.db.remotes import add_remotes, load_remotes, normalize_origin, remove_remotes


class TestNormalizeOrigin:
    def test_strips_query_fragment_and_trailing_slash(self):
        uri = "https://pkgs.example.com/linux/amd64/?token=x#frag"
        assert normalize_origin(uri) == "https://pkgs.example.com/linux/amd64"

    def test_keeps_port(self):
        assert normalize_origin("http://localhost:8080/repo") == "http://localhost:8080/repo"

    @pytest.mark.parametrize("uri", ["pkgs.example.com/repo", "https:///repo", ""])
    def test_missing_scheme_or_host(self, uri):
        with pytest.raises(ValidationError):
            normalize_origin(uri)

    @pytest.mark.parametrize("uri", ["https://pkgs.example.com/a b", "https://x.com/\x07"])
    def test_invalid_characters(self, uri):
        with pytest.raises(ValidationError, match="invalid characters"):
            normalize_origin(uri)


class TestRegistry:
    def test_empty_by_default(self, layout):
        assert load_remotes(layout) == []

    def test_add_appends_in_order(self, layout):
        add_remotes(layout, ["https://a.example.com/"])
        add_remotes(layout, ["https://b.example.com", "https://c.example.com"])
        assert load_remotes(layout) == [
            "https://a.example.com",
            "https://b.example.com",
            "https://c.example.com",
        ]

    def test_add_existing_rejected(self, layout):
        add_remotes(layout, ["https://a.example.com"])
        with pytest.raises(DuplicateError):
            add_remotes(layout, ["https://a.example.com/"])
        assert load_remotes(layout) == ["https://a.example.com"]

    def test_add_repeated_in_one_call_rejected(self, layout):
        with pytest.raises(DuplicateError):
            add_remotes(layout, ["https://a.example.com", "https://a.example.com"])
        assert load_remotes(layout) == []

    def test_remove_keeps_order_of_rest(self, layout):
        add_remotes(layout, ["https://a.example.com", "https://b.example.com", "https://c.example.com"])
        remaining = remove_remotes(layout, ["https://b.example.com"])
        assert remaining == ["https://a.example.com", "https://c.example.com"]
        assert load_remotes(layout) == remaining

    def test_remove_nothing_matching(self, layout):
        add_remotes(layout, ["https://a.example.com"])
        with pytest.raises(NotFoundError, match="found no matching remotes"):
            remove_remotes(layout, ["https://z.example.com"])
