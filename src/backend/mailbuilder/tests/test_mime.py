"""Tests for the MIME part tree writer."""

import base64
import email
import re
from concurrent.futures import ThreadPoolExecutor
from email import policy

import pytest

from mailbuilder import MimePart, make_boundary
from mailbuilder.errors import InvariantError
from mailbuilder.headers import ContentType, Raw, Text

from .utils import long_lines

BOUNDARY_RE = re.compile(rb'boundary="([^"]+)"')


def nested(depth):
    """Build a chain of multipart/mixed parts around a single text leaf."""
    part = MimePart.new_text("deep")
    for _ in range(depth):
        part = MimePart.new_multipart("multipart/mixed", [part])
    return part


class FailingSink:
    """A sink that fails after a number of writes."""

    def __init__(self, writes_before_failure):
        self.remaining = writes_before_failure

    def write(self, data):
        if not self.remaining:
            raise OSError("disk full")
        self.remaining -= 1
        return len(data)


class TestMultipart:
    """Tests for multipart serialization."""

    def test_two_text_parts(self):
        """Test a multipart/mixed part with two text children."""
        part = MimePart.new_multipart(
            "multipart/mixed", [MimePart.new_text("Hello"), MimePart.new_text("World")]
        )
        data = part.to_bytes()

        boundaries = BOUNDARY_RE.findall(data)
        assert len(boundaries) == 1
        boundary = boundaries[0]
        assert data.count(b"--" + boundary + b"\r\n") == 2
        assert data.count(b"--" + boundary + b"--\r\n") == 1
        assert data.count(b"Content-Transfer-Encoding: 7bit") == 2
        assert not long_lines(data)

        parsed = email.message_from_bytes(data, policy=policy.default)
        assert parsed.get_content_type() == "multipart/mixed"
        children = list(parsed.iter_parts())
        assert [c.get_content().strip() for c in children] == ["Hello", "World"]

    def test_synthesized_boundary_is_recorded(self):
        """Test that writing twice gives the same bytes."""
        part = MimePart.new_multipart("multipart/mixed", [MimePart.new_text("a")])
        first = part.to_bytes()

        assert part.headers["Content-Type"].get_attribute("boundary")
        assert part.to_bytes() == first

    def test_explicit_boundary_is_used(self):
        """Test that an existing boundary attribute is kept."""
        part = MimePart(
            ContentType("multipart/alternative", {"boundary": "fixed-boundary"}),
            [MimePart.new_text("a"), MimePart.new_html("<p>a</p>")],
        )
        data = part.to_bytes()

        assert data.count(b"\r\n--fixed-boundary\r\n") == 2
        assert data.endswith(b"\r\n--fixed-boundary--\r\n")

    def test_missing_content_type(self):
        """Test that a multipart part without Content-Type becomes multipart/mixed."""
        part = MimePart(contents=[MimePart.new_text("a")])
        data = part.to_bytes()

        assert data.startswith(b"Content-Type: multipart/mixed;")
        assert part.headers["Content-Type"].c_type == "multipart/mixed"

    def test_raw_content_type_with_boundary(self):
        """Test that the boundary of a raw Content-Type is found and used."""
        part = MimePart(
            Raw('multipart/mixed; boundary="raw-boundary"'), [MimePart.new_text("a")]
        )
        data = part.to_bytes()

        assert data.startswith(b'Content-Type: multipart/mixed; boundary="raw-boundary"\r\n')
        assert b"\r\n--raw-boundary\r\n" in data
        assert data.endswith(b"\r\n--raw-boundary--\r\n")

    def test_raw_content_type_without_boundary(self):
        """Test that a boundary is appended to a raw Content-Type."""
        part = MimePart(Raw("multipart/related"), [MimePart.new_text("a")])
        data = part.to_bytes()

        boundary = BOUNDARY_RE.search(data).group(1)
        assert data.startswith(b"Content-Type: multipart/related; boundary=")
        assert b"\r\n--" + boundary + b"--\r\n" in data
        assert boundary.decode() in part.headers["Content-Type"].raw

    @pytest.mark.parametrize("boundary", ["abc def", "a'()+_,-./:=?z"])
    def test_raw_quoted_boundary_with_special_characters(self, boundary):
        """Test that a quoted boundary keeps its spaces and punctuation."""
        part = MimePart(
            Raw(f'multipart/mixed; boundary="{boundary}"'), [MimePart.new_text("a")]
        )
        data = part.to_bytes()
        delimiter = boundary.encode("ascii")

        assert b"\r\n--" + delimiter + b"\r\n" in data
        assert data.endswith(b"\r\n--" + delimiter + b"--\r\n")
        message = email.message_from_bytes(data, policy=policy.default)
        assert len(message.get_payload()) == 1

    def test_raw_unquoted_boundary(self):
        """Test that an unquoted boundary token is used as is."""
        part = MimePart(Raw("multipart/mixed; boundary=simple-token"), [MimePart.new_text("a")])
        data = part.to_bytes()

        assert b"\r\n--simple-token\r\n" in data
        assert data.endswith(b"\r\n--simple-token--\r\n")

    def test_raw_boundary_parameter_name_must_match(self):
        """Test that a parameter merely ending in "boundary" is not taken as the boundary."""
        part = MimePart(Raw('multipart/mixed; xboundary="nope"'), [MimePart.new_text("a")])
        data = part.to_bytes()

        assert b"--nope" not in data
        boundary = re.search(rb'; boundary="([^"]+)"', data).group(1)
        assert data.endswith(b"\r\n--" + boundary + b"--\r\n")

    def test_unsupported_content_type_value(self):
        """Test that free text cannot carry a multipart boundary."""
        part = MimePart(Text("multipart/mixed"), [MimePart.new_text("a")])
        with pytest.raises(InvariantError):
            part.to_bytes()

    def test_empty_multipart(self):
        """Test that a multipart part without children is still closed."""
        part = MimePart.new_multipart("multipart/mixed")
        data = part.to_bytes()
        boundary = BOUNDARY_RE.search(data).group(1)
        assert data.endswith(b"\r\n\r\n--" + boundary + b"--\r\n")

    def test_nested_parts_are_closed_in_order(self):
        """Test that each level opens and closes exactly once, innermost first."""
        data = nested(10).to_bytes()

        boundaries = BOUNDARY_RE.findall(data)
        assert len(set(boundaries)) == 10
        closings = []
        for boundary in boundaries:
            assert data.count(b"--" + boundary + b"\r\n") == 1
            assert data.count(b"--" + boundary + b"--\r\n") == 1
            closings.append(data.index(b"--" + boundary + b"--\r\n"))
        assert closings == sorted(closings, reverse=True)

        parsed = email.message_from_bytes(data, policy=policy.default)
        depth = 0
        while parsed.is_multipart():
            parsed = next(parsed.iter_parts())
            depth += 1
        assert depth == 10
        assert parsed.get_content().strip() == "deep"

    def test_deep_nesting_does_not_recurse(self):
        """Test that very deep trees are written without hitting the recursion limit."""
        data = nested(1500).to_bytes()

        assert len(BOUNDARY_RE.findall(data)) == 1500
        assert b"\r\n\r\ndeep" in data

    def test_add_part_requires_multipart(self):
        """Test that children can only be added to multipart parts."""
        with pytest.raises(InvariantError):
            MimePart.new_text("leaf").add_part(MimePart.new_text("child"))


class TestLeafParts:
    """Tests for leaf part serialization."""

    def test_text_part(self):
        """Test a simple text part."""
        assert MimePart.new_text("Hello").to_bytes() == (
            b'Content-Type: text/plain; charset="utf-8"\r\n'
            b"Content-Transfer-Encoding: 7bit\r\n"
            b"\r\n"
            b"Hello"
        )

    def test_bare_lf_is_normalized(self):
        """Test that 7bit text bodies use CRLF line breaks."""
        data = MimePart.new_text("line one\nline two\r\nline three").to_bytes()
        assert data.endswith(b"\r\n\r\nline one\r\nline two\r\nline three")

    def test_non_ascii_text_is_quoted_printable(self):
        """Test that mostly-ASCII text with accents is quoted-printable."""
        data = MimePart.new_text("Café au lait, s'il vous plaît").to_bytes()
        assert b"Content-Transfer-Encoding: quoted-printable\r\n" in data
        assert b"Caf=C3=A9" in data

    def test_binary_attachment_is_base64(self):
        """Test that non-text binary content is always base64."""
        content = b"%PDF-1.4 looks like ascii"
        part = MimePart.new_binary("application/pdf", content).attachment("report.pdf")
        data = part.to_bytes()

        assert b'Content-Disposition: attachment; filename="report.pdf"\r\n' in data
        assert b"Content-Transfer-Encoding: base64\r\n" in data
        assert data.endswith(base64.b64encode(content))

    def test_text_attachment_is_not_normalized(self):
        """Test that line breaks of text attachments are kept by encoding them."""
        part = MimePart.new_text("plain notes").attachment("notes.txt")
        assert b"Content-Transfer-Encoding: 7bit\r\n\r\nplain notes" in part.to_bytes()

        part = MimePart.new_text("line one\nline two").attachment("notes.txt")
        assert b"Content-Transfer-Encoding: quoted-printable\r\n" in part.to_bytes()

    def test_text_bytes_use_the_heuristic(self):
        """Test that bytes with a text type are encoded like text."""
        part = MimePart(ContentType("text/plain"), b"hello")
        assert b"Content-Transfer-Encoding: 7bit\r\n\r\nhello" in part.to_bytes()

    def test_caller_transfer_encoding_is_ignored(self):
        """Test that the writer always chooses the transfer encoding."""
        part = MimePart.new_text("Hello").header(
            "Content-Transfer-Encoding", Raw("binary")
        )
        data = part.to_bytes()
        assert data.count(b"Content-Transfer-Encoding") == 1
        assert b"binary" not in data

    def test_caller_transfer_encoding_is_ignored_in_any_case(self):
        """Test that a lowercase Content-Transfer-Encoding header is not written twice."""
        part = MimePart.new_text("Hello").header(
            "content-transfer-encoding", Raw("binary")
        )
        data = part.to_bytes()
        assert data.lower().count(b"content-transfer-encoding") == 1
        assert b"binary" not in data

    def test_header_order_is_kept(self):
        """Test that headers are written in insertion order."""
        part = (
            MimePart.new_text("x")
            .header("X-First", Raw("1"))
            .header("Subject", Text("second"))
            .language("en")
        )
        data = part.to_bytes()
        positions = [
            data.index(name)
            for name in (
                b"Content-Type:",
                b"X-First:",
                b"Subject:",
                b"Content-Language:",
                b"Content-Transfer-Encoding:",
            )
        ]
        assert positions == sorted(positions)

    def test_inline_part_with_content_id(self):
        """Test inline disposition and Content-ID."""
        part = MimePart.new_binary("image/png", b"\x89PNG").inline().cid("logo@example")
        data = part.to_bytes()
        assert b"Content-Disposition: inline\r\n" in data
        assert b"Content-ID: <logo@example>\r\n" in data

    def test_unsupported_body(self):
        """Test that unknown body types are rejected."""
        with pytest.raises(InvariantError):
            MimePart(ContentType("text/plain"), 42).to_bytes()


class TestSinkErrors:
    """Tests for errors raised by the output sink."""

    @pytest.mark.parametrize("writes", [0, 3, 12])
    def test_sink_error_propagates(self, writes):
        """Test that write errors are not wrapped or swallowed."""
        part = MimePart.new_multipart(
            "multipart/mixed", [MimePart.new_text("a"), MimePart.new_text("b")]
        )
        with pytest.raises(OSError, match="disk full"):
            part.write_part(FailingSink(writes))


class TestMakeBoundary:
    """Tests for boundary generation."""

    def test_format(self):
        """Test that boundaries are short and only use safe characters."""
        boundary = make_boundary()
        assert re.fullmatch(r"[0-9a-f]+_[0-9a-f]+_[0-9a-f]+", boundary)
        assert len(boundary) <= 70

    def test_unique_in_sequence(self):
        """Test that boundaries generated in a tight loop never repeat."""
        assert len({make_boundary() for _ in range(10000)}) == 10000

    def test_unique_across_threads(self):
        """Test that concurrent threads never get the same boundary."""

        def generate(_):
            return [make_boundary() for _ in range(1000)]

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(generate, range(8)))

        boundaries = [b for batch in results for b in batch]
        assert len(set(boundaries)) == 8000
