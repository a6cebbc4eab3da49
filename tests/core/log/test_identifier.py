"""Tests for identifier generation."""

from chainlog.core.log.identifier import IDENTIFIER_LENGTH, generate_identifier, is_identifier


class TestIdentifier:
    """Test generate_identifier."""

    def test_shape(self):
        """Test identifier length and alphabet."""
        identifier = generate_identifier()

        assert len(identifier) == IDENTIFIER_LENGTH
        assert is_identifier(identifier)

    def test_unique(self):
        """Test that identifiers do not repeat."""
        identifiers = {generate_identifier() for _ in range(1000)}

        assert len(identifiers) == 1000

    def test_is_identifier_rejects(self):
        """Test malformed identifiers."""
        assert not is_identifier("nonexistent")
        assert not is_identifier("A" * IDENTIFIER_LENGTH)
        assert not is_identifier("a" * (IDENTIFIER_LENGTH + 1))
        assert not is_identifier(None)
