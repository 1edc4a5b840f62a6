"""Deployment of generated websites.

Hosting is simulated: the deploy target computes the public URL a real
deploy would produce without transferring anything.
"""

import re
from dataclasses import dataclass

from .logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_DEPLOY_DOMAIN = "netlify.app"
FALLBACK_SLUG = "website"

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Derive a URL-safe slug from a business name.

    The name is lowercased, every run of characters outside ``[a-z0-9]``
    becomes a single hyphen and edge hyphens are stripped. A name with no
    usable characters yields ``"website"``.

    Example:
        >>> slugify("Anush's Jams & Co.")
        'anush-s-jams-co'
    """
    slug = _NON_SLUG_CHARS.sub("-", (name or "").lower()).strip("-")
    return slug or FALLBACK_SLUG


@dataclass(frozen=True)
class DeployTarget:
    """Where a site was (or would have been) published."""

    url: str
    note: str


class SimulatedDeployer:
    """Deploy target that derives the URL without publishing."""

    def __init__(self, domain: str = DEFAULT_DEPLOY_DOMAIN):
        self.domain = domain.strip().strip(".") or DEFAULT_DEPLOY_DOMAIN

    def deploy(self, slug: str) -> DeployTarget:
        url = f"https://{slug}.{self.domain}"
        logger.info("Simulated deploy", extra={"slug": slug, "url": url})
        return DeployTarget(
            url=url,
            note="Simulated URL. Connect a hosting provider API key for real deployment.",
        )
