"""Worker ID generation using coolnames for unique, memorable identifiers."""

from coolname import generate_slug


def generate_worker_id(prefix: str = "") -> str:
    """Generate a memorable identifier for one forwarder process.

    The ID is stamped on every log line through the logging context, so
    several forwarders writing to the same sink can be told apart.

    Args:
        prefix: Optional prefix (e.g., "forwarder")

    Returns:
        "prefix-word1-word2" or "word1-word2"

    Examples:
        >>> generate_worker_id()
        'brave-tiger'
        >>> generate_worker_id("forwarder")
        'forwarder-swift-falcon'
    """
    slug = generate_slug(2)

    if prefix:
        return f"{prefix}-{slug}"

    return slug
