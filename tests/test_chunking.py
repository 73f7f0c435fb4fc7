"""
Unit tests for the chunk codec
"""

import math

import pytest

from storage.chunking import byte_length, chunk_key, decode, encode, metadata_key, serialize, stored_length


class TestSerialize:
    """Tests for serialize and byte_length"""

    def test_serialize_is_compact(self):
        """Test output has no whitespace, like JSON.stringify"""
        assert serialize({"a": [1, 2], "b": None}) == '{"a":[1,2],"b":null}'

    def test_serialize_keeps_unicode(self):
        """Test non-ASCII characters are not escaped"""
        assert serialize(["é"]) == '["é"]'

    def test_byte_length_counts_utf8_bytes(self):
        """Test byte length differs from character count for multi-byte text"""
        assert byte_length("abc") == 3
        assert byte_length("é") == 2
        assert byte_length("😀") == 4


class TestEncode:
    """Tests for encode/decode"""

    def test_ascii_chunk_count_is_ceiling(self):
        """Test chunk count equals ceil(N / C) for ASCII input"""
        # Arrange
        text = "a" * 20001

        # Act
        chunks = encode(text, 7000)

        # Assert
        assert len(chunks) == math.ceil(20001 / 7000)
        assert all(byte_length(chunk) <= 7000 for chunk in chunks)
        assert decode(chunks) == text

    def test_exact_multiple(self):
        """Test input of exactly k * C bytes gives k chunks"""
        chunks = encode("b" * 14000, 7000)

        assert len(chunks) == 2
        assert [len(chunk) for chunk in chunks] == [7000, 7000]

    def test_multibyte_characters_are_not_split(self):
        """Test chunk boundaries fall between characters"""
        # Arrange
        text = "é" * 10  # 20 bytes

        # Act
        chunks = encode(text, 5)

        # Assert
        assert all(byte_length(chunk) <= 5 for chunk in chunks)
        assert all(set(chunk) == {"é"} for chunk in chunks)
        assert decode(chunks) == text

    @pytest.mark.parametrize("text", [
        "é" * 5000,
        "a" + "😀" * 3000,
        "ab" + "中文" * 2500,
        "Ünïcødé 😀 " * 700,
    ])
    def test_multibyte_chunk_count_bound(self, text):
        """Test ceil(N / C) <= count <= ceil(N / (C - 3)) for multi-byte input"""
        size = byte_length(text)

        chunks = encode(text, 1000)

        assert math.ceil(size / 1000) <= len(chunks) <= math.ceil(size / (1000 - 3))
        assert decode(chunks) == text

    def test_four_byte_characters(self):
        """Test a chunk limit equal to one 4-byte character"""
        chunks = encode("😀😀", 4)

        assert chunks == ["😀", "😀"]

    def test_empty_input(self):
        """Test empty string gives no chunks"""
        assert encode("", 7000) == []
        assert decode([]) == ""

    def test_limit_too_small(self):
        """Test a limit below one character width is rejected"""
        with pytest.raises(ValueError):
            encode("abc", 3)


class TestStoredSizeCeiling:
    """Tests for encode with max_stored_bytes"""

    def test_quote_heavy_chunks_fit_stored_ceiling(self):
        """Test escaped quotes count against the ceiling"""
        # Arrange
        text = serialize([{"a": "b"}] * 2000)  # about 40% quotes

        # Act
        chunks = encode(text, 7000, max_stored_bytes=8000)

        # Assert
        assert all(stored_length(chunk) <= 8000 for chunk in chunks)
        assert all(byte_length(chunk) <= 7000 for chunk in chunks)
        assert len(chunks) > math.ceil(byte_length(text) / 7000)
        assert decode(chunks) == text

    def test_plain_text_unchanged(self):
        """Test input without escapes splits exactly as without a ceiling"""
        text = "x" * 20001

        assert encode(text, 7000, max_stored_bytes=8000) == encode(text, 7000)

    def test_control_characters(self):
        """Test six-byte escapes are charged in full"""
        text = "\x01" * 100

        chunks = encode(text, 7000, max_stored_bytes=62)

        assert all(stored_length(chunk) <= 62 for chunk in chunks)
        assert len(chunks) == 10
        assert decode(chunks) == text

    def test_ceiling_too_small(self):
        with pytest.raises(ValueError):
            encode("abc", 7000, max_stored_bytes=7)


class TestKeys:
    """Tests for key helpers"""

    def test_chunk_key(self):
        assert chunk_key("customTabs", 3) == "customTabs_chunk_3"

    def test_metadata_key(self):
        assert metadata_key("customTabs") == "customTabs_metadata"
