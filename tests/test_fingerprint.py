"""
Tests for source fingerprinting.
"""

from pgproxy.fingerprint import digest, extract_body, fingerprint_body, normalize


def test_normalize_removes_all_whitespace():
    """Test that spaces, tabs and newlines are removed."""
    assert normalize(" let a = 1;\n\treturn a;\r\n") == "leta=1;returna;"


def test_digest_is_deterministic():
    """Test that the same text always has the same digest."""
    assert digest("return a + b;") == digest("return a + b;")
    # SHA-1 is 20 bytes, 28 characters in base64
    assert len(digest("return a + b;")) == 28


def test_digest_ignores_whitespace():
    """Test that re-indented source has the same digest."""
    original = "(a, b) => {\n    return a + b;\n}"
    reformatted = "(a,b)=>{ return a+b; }"

    assert digest(original) == digest(reformatted)


def test_digest_detects_semantic_edits():
    """Test that altered statements change the digest."""
    assert digest("return a + b;") != digest("return a - b;")
    assert digest("return a + b;") != digest("plv8.elog(NOTICE, 'x'); return a + b;")


def test_extract_body_between_markers():
    """Test that the body is the text between the first two markers."""
    text = "create function f() as $BODY$ let x = 1; $BODY$ ;"

    assert extract_body(text) == " let x = 1; "


def test_extract_body_without_markers():
    """Test that text without markers is its own body."""
    assert extract_body(" let x = 1; ") == " let x = 1; "
    assert extract_body("$BODY$ unterminated") == "$BODY$ unterminated"


def test_fingerprint_body_matches_catalog_body():
    """Test that a definition and its stored body have the same fingerprint."""
    definition = "create or replace function public.pgproxy_f(params json)\n$BODY$\nreturn 1;\n$BODY$\n"

    assert fingerprint_body(definition) == fingerprint_body("\nreturn 1;\n")
