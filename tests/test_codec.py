"""Tests for the frontmatter codec."""

from __future__ import annotations

import frontmatter
import pytest

from hubsync.storage import codec


class TestEncode:
    def test_value_kinds(self):
        header = codec.encode(
            {"title": "Ideas", "tags": ["a", "b"], "isFavorite": True, "order": 3}
        )
        assert header.splitlines() == [
            "---",
            'title: "Ideas"',
            'tags: ["a", "b"]',
            "isFavorite: true",
            "order: 3",
            "---",
        ]

    def test_quotes_escaped(self):
        header = codec.encode({"title": 'Say "hi"'})
        assert 'title: "Say \\"hi\\""' in header

    def test_body_keys_and_none_skipped(self):
        header = codec.encode({"title": "x", "content": "body text", "extra": None})
        assert "content" not in header
        assert "extra" not in header

    def test_empty_metadata(self):
        assert codec.encode({}) == "---\n---"

    def test_header_is_valid_yaml(self):
        text = codec.compose(
            {"title": 'Quote " and \\ slash', "tags": ["x, y", "z"], "isFavorite": False, "n": 1.5},
            "Body",
        )
        post = frontmatter.loads(text)
        assert post.metadata == {
            "title": 'Quote " and \\ slash',
            "tags": ["x, y", "z"],
            "isFavorite": False,
            "n": 1.5,
        }
        assert post.content == "Body"


class TestDecode:
    def test_no_header(self):
        assert codec.decode("just text") == ({}, "just text")

    def test_unclosed_header(self):
        text = "---\ntitle: x\nno closing"
        assert codec.decode(text) == ({}, text)

    def test_never_raises_on_garbage(self):
        for text in ["", "---", "---\n---", ":\n:", "---\n: x\n---\n", None]:
            meta, body = codec.decode(text)
            assert isinstance(meta, dict)
            assert isinstance(body, str)

    def test_list_parsing(self):
        meta, _ = codec.decode("---\ntags: [ \"a\", 'b' , c, , \"\" ]\n---\n")
        assert meta["tags"] == ["a", "b", "c"]

    def test_bools_and_strings(self):
        meta, body = codec.decode('---\na: true\nb: false\nc: "quoted"\nd: bare words\n---\nrest')
        assert meta == {"a": True, "b": False, "c": "quoted", "d": "bare words"}
        assert body == "rest"

    def test_splits_on_first_colon(self):
        meta, _ = codec.decode('---\nurl: "https://example.com:8080/x"\n---\n')
        assert meta["url"] == "https://example.com:8080/x"

    def test_crlf_header(self):
        meta, body = codec.decode('---\r\ntitle: "x"\r\n---\r\nbody')
        assert meta == {"title": "x"}
        assert body == "body"

    def test_lines_without_key_ignored(self):
        meta, _ = codec.decode("---\n: orphan\nnot a pair\nk: v\n---\n")
        assert meta == {"k": "v"}


class TestRoundTrip:
    @pytest.mark.parametrize(
        "metadata",
        [
            {"title": "Ideas", "tags": ["work", "draft"], "isFavorite": True},
            {"title": 'He said "no"\nthen left', "tags": [], "order": 0},
            {"title": "C:\\path\\to", "count": -12, "ratio": 0.25, "flag": False},
            {"title": "Запись", "tags": ["тег, с запятой", "x"]},
        ],
    )
    def test_decode_inverts_encode(self, metadata):
        body = "Line one\n\n---\nnot a header\n"
        assert codec.decode(codec.encode(metadata) + "\n" + body) == (metadata, body)

    def test_compose_matches_manual_join(self):
        assert codec.compose({"a": "b"}, "body") == codec.encode({"a": "b"}) + "\nbody"
