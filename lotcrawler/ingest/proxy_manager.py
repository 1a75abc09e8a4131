"""Proxy list loading and random selection for image-host requests."""

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import quote

logger = logging.getLogger(__name__)


class ProxyParseError(ValueError):
    """Raised when a proxy list line is malformed."""

    pass


@dataclass(frozen=True)
class ProxyInfo:
    """Proxy information for use in upload requests."""

    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def url(self) -> str:
        """Get proxy URL for httpx."""
        if self.username:
            # Credentials may contain URL delimiters (/ # ? @)
            auth = f"{quote(self.username, safe='')}:{quote(self.password or '', safe='')}"
            return f"http://{auth}@{self.host}:{self.port}"
        return f"http://{self.host}:{self.port}"

    @property
    def display(self) -> str:
        """Proxy description without the password, for logs."""
        auth = f"{self.username}@" if self.username else ""
        return f"{auth}{self.host}:{self.port}"


def parse_proxy_line(line: str) -> ProxyInfo:
    """
    Parse one proxy list entry.

    Accepted forms: ``user:pass@host:port`` and ``host:port``.

    Raises:
        ProxyParseError: If host or port are missing or the port is not a number
    """
    text = line.strip()
    auth_part, _, host_part = text.rpartition("@")
    host, sep, port_text = host_part.partition(":")
    if not host or not sep:
        raise ProxyParseError(f"Invalid proxy entry: {text!r}")
    try:
        port = int(port_text)
    except ValueError as e:
        raise ProxyParseError(f"Invalid proxy port in {text!r}") from e

    username = password = None
    if auth_part:
        username, _, password = auth_part.partition(":")
    return ProxyInfo(host=host, port=port, username=username or None, password=password or None)


def load_proxies(path: str | Path) -> list[ProxyInfo]:
    """
    Load a proxy list file, one entry per line; blank lines are ignored.

    A missing file means no proxies (direct connections). Malformed lines are
    logged and skipped.
    """
    p = Path(path)
    if not p.exists():
        return []

    proxies: list[ProxyInfo] = []
    for lineno, line in enumerate(p.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            proxies.append(parse_proxy_line(line))
        except ProxyParseError as e:
            logger.warning(f"Skipping proxy on line {lineno} of {p}: {e}")

    logger.info(f"Loaded {len(proxies)} proxies from {p}")
    return proxies


def choose_proxy(proxies: Sequence[ProxyInfo], rng: Optional[random.Random] = None) -> Optional[ProxyInfo]:
    """Pick a proxy uniformly at random, or None for a direct connection."""
    if not proxies:
        return None
    return (rng or random).choice(proxies)
