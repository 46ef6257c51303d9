"""Domain normalization for SERP matching.

SERP results expose a bare ``domain`` field, so the configured target (which
may be a Search Console property or a full URL) is reduced to a hostname.
"""

from rankwatch.core.logging import get_logger

logger = get_logger("url_normalizer")

_PREFIXES = ("sc-domain:", "https://", "http://", "www.")


def normalize_target_domain(value: str | None) -> str:
    """Reduce a property or URL to a bare hostname.

    >>> normalize_target_domain("sc-domain:example.com")
    'example.com'
    >>> normalize_target_domain("https://www.example.com/")
    'example.com'
    """
    if not value:
        return ""

    domain = value.strip().lower()
    for prefix in _PREFIXES:
        if domain.startswith(prefix):
            domain = domain[len(prefix) :]
    domain = domain.split("/", 1)[0]

    if domain != value:
        logger.debug(
            "Normalized target domain",
            extra={"original": value, "normalized": domain},
        )
    return domain
