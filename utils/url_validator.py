"""
SSRF Protection Module

Validates URLs before making HTTP requests to prevent Server-Side Request Forgery attacks.
Blocks access to localhost, private IPs, cloud metadata hosts and non-http(s) schemes,
follows redirects by hand so every hop is re-validated, and classifies fetch failures
into timeout / HTTP status / network errors with messages fit to show a user.
"""

import ipaddress
import logging
import socket
from urllib.parse import urlparse, urljoin

import requests

from constants import BLOCKED_HOSTNAMES, MAX_REDIRECTS, MAX_RESPONSE_SIZE, REQUEST_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    'User-Agent': USER_AGENT,
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}

# 100.64.0.0/10 is neither private nor global in ipaddress terms
_CARRIER_GRADE_NAT = ipaddress.ip_network('100.64.0.0/10')
_TEREDO = ipaddress.ip_network('2001::/32')


class FetchError(Exception):
    """Base class for every failure while fetching an external URL."""
    pass


class InvalidUrlError(FetchError):
    """Raised when a URL is malformed or not http/https."""
    pass


class SSRFError(FetchError):
    """Raised when a URL fails SSRF validation."""
    pass


class FetchTimeoutError(FetchError):
    """Raised when the remote site does not answer in time."""
    pass


class HttpStatusError(FetchError):
    """Raised when the remote site answers with a non-2xx status."""

    def __init__(self, status_code, reason=''):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f'Failed to fetch URL: HTTP {status_code}: {reason}')


class NetworkError(FetchError):
    """Raised for connection-level failures."""
    pass


class ContentError(FetchError):
    """Raised when the response is too large or of the wrong type."""
    pass


def _is_blocked_ipv4(ip):
    return (
        ip.is_private or
        ip.is_loopback or
        ip.is_reserved or
        ip.is_link_local or
        ip.is_multicast or
        ip.is_unspecified or
        ip in _CARRIER_GRADE_NAT
    )


def embedded_ipv4(ip):
    """
    Return the IPv4 address carried inside an IPv6 address, if any.

    Handles IPv4-mapped (::ffff:a.b.c.d), IPv4-compatible (::a.b.c.d) and
    6to4 (2002:XXYY:ZZWW::). Teredo is reported as loopback so it is
    always blocked.
    """
    if ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    if ip.sixtofour is not None:
        return ip.sixtofour
    if ip in _TEREDO:
        return ipaddress.IPv4Address('127.0.0.1')
    value = int(ip)
    if 1 < value < 2 ** 32:
        return ipaddress.IPv4Address(value)
    return None


def is_private_ip(ip_str):
    """Check if an IP address is private, loopback, or otherwise internal."""
    if not ip_str or not isinstance(ip_str, str):
        return True
    try:
        ip = ipaddress.ip_address(ip_str.strip().strip('[]').split('%')[0])
    except ValueError:
        return True  # Invalid IP, treat as unsafe

    if ip.version == 4:
        return _is_blocked_ipv4(ip)

    inner = embedded_ipv4(ip)
    if inner is not None:
        return _is_blocked_ipv4(inner)

    return (
        ip.is_loopback or
        ip.is_unspecified or
        ip.is_link_local or
        ip.is_private or  # covers fc00::/7
        ip.is_multicast or
        ip.is_reserved
    )


def is_blocked_hostname(hostname):
    lower = hostname.lower().rstrip('.')
    return (
        lower in BLOCKED_HOSTNAMES or
        lower.endswith('.internal') or
        lower.endswith('.local')
    )


def validate_url(url):
    """
    Parse a URL and ensure it is http/https with a host.

    Returns:
        The urllib ParseResult

    Raises:
        InvalidUrlError: For anything else
    """
    message = 'Invalid URL. Please provide a valid HTTP or HTTPS URL.'
    if not url or not isinstance(url, str):
        raise InvalidUrlError(message)
    try:
        parsed = urlparse(url.strip())
        hostname = parsed.hostname
    except ValueError:
        raise InvalidUrlError(message)
    if parsed.scheme not in ('http', 'https') or not hostname:
        raise InvalidUrlError(message)
    return parsed


def validate_hostname(hostname):
    """
    Reject hostnames that are, or resolve to, internal addresses.

    Raises:
        SSRFError: If the host is blocked or cannot be resolved
    """
    if is_blocked_hostname(hostname):
        raise SSRFError('Access to internal/private hosts is not allowed.')

    # IP literal (IPv4, or IPv6 which urlparse hands back without brackets)
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        pass
    else:
        if is_private_ip(hostname):
            raise SSRFError('Access to private/internal IP addresses is not allowed.')
        return

    try:
        resolved = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror:
        raise SSRFError('Could not resolve hostname. Please check the URL.')

    if not resolved:
        raise SSRFError('Could not resolve hostname. Please check the URL.')

    for family, socktype, proto, canonname, sockaddr in resolved:
        if is_private_ip(sockaddr[0]):
            raise SSRFError('This URL resolves to a private/internal IP address and cannot be accessed.')


def _get_with_safe_redirects(url, headers, timeout):
    """GET a URL, following up to MAX_REDIRECTS redirects and validating each hop."""
    for _ in range(MAX_REDIRECTS + 1):
        parsed = validate_url(url)
        validate_hostname(parsed.hostname)

        response = requests.get(url, headers=headers, timeout=timeout, stream=True, allow_redirects=False)

        if not 300 <= response.status_code < 400:
            return response

        location = response.headers.get('location')
        response.close()
        if not location:
            raise NetworkError('Redirect response missing Location header.')
        url = urljoin(url, location)

    raise SSRFError('Too many redirects. Please try a different URL.')


def safe_fetch(url, headers=None, timeout=REQUEST_TIMEOUT, max_size=MAX_RESPONSE_SIZE, allowed_types=None):
    """
    Fetch a URL with SSRF protection and size limits.

    Args:
        url: The URL to fetch
        headers: Optional HTTP headers dict
        timeout: Request timeout in seconds (default 15)
        max_size: Maximum response size in bytes (default 5MB)
        allowed_types: Optional content-type substrings the response must match

    Returns:
        requests.Response object with its content fully read; response.url
        is the final URL after redirects

    Raises:
        InvalidUrlError: If the URL is not http/https
        SSRFError: If any hop fails security validation
        FetchTimeoutError, HttpStatusError, NetworkError: For fetch failures
        ContentError: If the body is too large or of a disallowed type
    """
    validate_url(url)

    if headers is None:
        headers = DEFAULT_HEADERS

    try:
        response = _get_with_safe_redirects(url, headers, timeout)
        if not response.ok:
            response.close()
            raise HttpStatusError(response.status_code, response.reason or '')

        content_type = response.headers.get('content-type', '')
        if allowed_types and not any(t in content_type for t in allowed_types):
            response.close()
            raise ContentError('URL does not point to an HTML page. Please provide a link to a recipe webpage.')

        # Check content-length header if available
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            response.close()
            raise ContentError('Page is too large to process. Please try a different URL.')

        # Read content with size limit
        content = b''
        for chunk in response.iter_content(chunk_size=8192):
            content += chunk
            if len(content) > max_size:
                response.close()
                raise ContentError('Page is too large to process. Please try a different URL.')
    except requests.Timeout:
        raise FetchTimeoutError('Request timed out. The website took too long to respond.')
    except requests.RequestException as e:
        raise NetworkError(f'Failed to fetch URL: {e}')

    logger.debug('Fetched %s (%d bytes)', response.url, len(content))

    # Replace content in response for non-streaming use
    response._content = content
    return response
