import logging
from urllib.parse import urljoin, urlparse

from manifest_monitor.exceptions import InvalidURLError

logger = logging.getLogger(__name__)


def resolve_url(base_url: str, uri: str) -> str:
    """Resolve a possibly-relative segment or variant URI against its manifest URL.

    Absolute URIs are returned unchanged. URIs that cannot be parsed are
    returned as-is; fetching them later fails for that segment alone.
    """
    try:
        if urlparse(uri).scheme:
            return uri
        return urljoin(base_url, uri)
    except ValueError as e:
        logger.warning(f"Error parsing URI {uri!r} against {base_url}: {e}")
        return uri


def validate_manifest_url(url: str) -> str:
    if not (url.startswith("http://") or url.startswith("https://")):
        raise InvalidURLError(f"Invalid URL: {url!r}")
    try:
        urlparse(url)
    except ValueError as e:
        raise InvalidURLError(f"Invalid URL: {url!r}") from e
    return url
