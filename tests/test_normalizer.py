"""Tests for log normalization and key-phrase extraction."""

import pytest

from codetrace.errors import InvalidArgumentError
from codetrace.normalizer import extract_error_types, extract_key_phrases, normalize_log

SAMPLE_LOGS = [
    "User 192.168.0.5 failed at 2023-01-01T10:00:00Z code=404",
    "Request 550e8400-e29b-41d4-a716-446655440000 timed out after 30000 ms",
    "Cannot open /var/data/orders.csv for user admin@example.com",
    'NullPointerException: value "abc" was null at 0x7ffe1234',
    "Retry 3 of 5 for job {JOB_ID} took 1.25s on 10.0.0.1",
    "pointer 0X1F freed",
    "Format %S expected %D items from C:\\Logs\\app.log",
]


class TestNormalizeLog:
    """normalize_log levels."""

    def test_moderate_example(self):
        """Test IP and timestamp replacement with a preserved status code."""
        text = "User 192.168.0.5 failed at 2023-01-01T10:00:00Z code=404"

        assert normalize_log(text, "moderate") == "user ip failed at timestamp code=404"

    @pytest.mark.parametrize("text", SAMPLE_LOGS)
    def test_moderate_is_idempotent(self, text):
        """Test that normalizing twice equals normalizing once."""
        once = normalize_log(text, "moderate")

        assert normalize_log(once, "moderate") == once

    def test_light_collapses_whitespace_only(self):
        """Test that light keeps case and tokens."""
        assert normalize_log("  Error   in\tModule  42 ", "light") == "Error in Module 42"

    def test_volatile_tokens_replaced(self):
        """Test UUID, number, path and email placeholders."""
        uuid_log = normalize_log(SAMPLE_LOGS[1])
        path_log = normalize_log(SAMPLE_LOGS[2])

        assert "uuid" in uuid_log and "num" in uuid_log
        assert "filepath" in path_log and "email" in path_log

    def test_strings_and_hex(self):
        """Test quoted string and hex replacement."""
        result = normalize_log(SAMPLE_LOGS[3])

        assert "str" in result
        assert "hex" in result
        assert "abc" not in result

    def test_uppercase_prefixes(self):
        """Test that 0X hex and %S/%D placeholders are replaced on the first pass."""
        assert normalize_log("pointer 0X1F freed") == "pointer hex freed"
        assert normalize_log("Format %S of %D") == "format placeholder of placeholder"

    def test_camel_case_split(self):
        """Test camelCase boundaries become spaces."""
        assert normalize_log("orderService failed") == "order service failed"

    def test_short_numbers(self):
        """Test that short numbers become NUM unless they are status codes."""
        assert normalize_log("got 500 after 7 tries") == "got 500 after num tries"

    def test_heavy_strips_punctuation(self):
        """Test that heavy removes punctuation but keeps dots and underscores."""
        result = normalize_log("Failed: com.acme.Loader [init_cache] (code=500)!", "heavy")

        assert result == "failed com.acme.loader init_cache code 500"

    def test_default_level_is_moderate(self):
        """Test the default level."""
        text = SAMPLE_LOGS[0]

        assert normalize_log(text) == normalize_log(text, "moderate")

    def test_unknown_level(self):
        """Test that an unknown level is rejected."""
        with pytest.raises(InvalidArgumentError):
            normalize_log("x", "extreme")


class TestKeyPhrases:
    """extract_key_phrases."""

    def test_stack_frame_phrases(self):
        """Test method, frame and file name extraction from a stack line."""
        phrases = extract_key_phrases("at com.acme.billing.InvoiceService.generate(InvoiceService.java:42)")

        assert phrases[0] == "generate"
        assert "com.acme.billing.InvoiceService.generate(InvoiceService.java:42)" in phrases
        assert "InvoiceService.java" in phrases

    def test_error_message_and_quotes(self):
        """Test error-message and quoted-string extraction."""
        phrases = extract_key_phrases('ERROR: Connection refused for "orders-db"')

        assert "Connection refused for \"orders-db\"" in phrases
        assert "orders-db" in phrases

    def test_dotted_class_names(self):
        """Test capitalised dotted class names."""
        phrases = extract_key_phrases("Failure in Billing.InvoiceService while saving")

        assert "Billing.InvoiceService" in phrases

    def test_no_duplicates(self):
        """Test that repeated fragments appear once."""
        phrases = extract_key_phrases("load() failed; retry load() failed")

        assert phrases.count("load") == 1


class TestErrorTypes:
    """extract_error_types."""

    def test_exception_and_error_names(self):
        """Test exception-like tokens."""
        types = extract_error_types("PaymentDeclinedException then ValidationError then ReadTimeout")

        assert types[:2] == ["PaymentDeclinedException", "ValidationError"]
        assert "ReadTimeout" in types

    def test_status_fragments(self):
        """Test 4xx/5xx status fragments."""
        types = extract_error_types("upstream returned 503 Service Unavailable")

        assert "503 Service" in types

    def test_nothing_found(self):
        """Test a log with no error tokens."""
        assert extract_error_types("all good here") == []
