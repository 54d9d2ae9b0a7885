"""
Input validation for local note edits.

Checks titles, bodies and tags before the editing tools mutate a note, so
obviously malformed content is rejected locally instead of failing later
during a push.
"""

MAX_TITLE_LENGTH = 500
MAX_BODY_BYTES = 1_000_000
MAX_TAG_LENGTH = 64
MAX_TAGS = 50


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Title")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_title(title: str) -> tuple[bool, str]:
    """
    Validate a note title.

    Empty titles are allowed (new notes start untitled); the limit is on
    length and line breaks.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if len(title) > MAX_TITLE_LENGTH:
        return (
            False,
            format_validation_error(
                "Title", f"exceeds {MAX_TITLE_LENGTH} characters"
            ),
        )
    if "\n" in title or "\r" in title:
        return (
            False,
            format_validation_error("Title", "cannot contain line breaks"),
        )
    return (True, "")


def validate_body(
    body: str, max_size: int = MAX_BODY_BYTES
) -> tuple[bool, str]:
    """
    Validate a note body.

    Args:
        body: The body text to validate
        max_size: Maximum size in bytes (default: 1,000,000)

    Returns:
        Tuple of (is_valid, error_message).
    """
    body_bytes = len(body.encode("utf-8"))
    if body_bytes > max_size:
        return (
            False,
            format_validation_error(
                "Body", f"exceeds maximum size of {max_size} bytes"
            ),
        )
    return (True, "")


def validate_tags(tags: list[str]) -> tuple[bool, str]:
    """
    Validate a tag list.

    Validation rules:
        - At most ``MAX_TAGS`` tags
        - Each tag is non-blank and at most ``MAX_TAG_LENGTH`` characters
        - No duplicates (case-insensitive)

    Returns:
        Tuple of (is_valid, error_message).
    """
    if len(tags) > MAX_TAGS:
        return (
            False,
            format_validation_error("Tags", f"cannot exceed {MAX_TAGS}"),
        )

    seen: set[str] = set()
    for tag in tags:
        if not tag or not tag.strip():
            return (
                False,
                format_validation_error("Tag", "cannot be empty"),
            )
        if len(tag) > MAX_TAG_LENGTH:
            return (
                False,
                format_validation_error(
                    f"Tag '{tag[:20]}...'",
                    f"exceeds {MAX_TAG_LENGTH} characters",
                ),
            )
        key = tag.strip().lower()
        if key in seen:
            return (
                False,
                format_validation_error(f"Tag '{tag}'", "is duplicated"),
            )
        seen.add(key)

    return (True, "")
