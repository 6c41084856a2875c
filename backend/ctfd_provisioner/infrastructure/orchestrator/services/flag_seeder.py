"""
Flag Seeder - one challenge-creation submission per declared flag
"""

from typing import Dict, Iterable

import structlog

from ..errors import FlagSeedError, ProvisioningError
from ..models import FlagDefinition
from .session_client import FormEncoding, SessionClient

logger = structlog.get_logger(__name__)


def challenge_form(flag: FlagDefinition, nonce: str) -> Dict[str, str]:
    """Fields of a standard challenge with a single static key."""
    return {
        "name": flag.name,
        "value": str(flag.points),
        "key": flag.default,
        "nonce": nonce,
        "key_type[0]": "static",
        "category": "",
        "description": "",
        "max_attempts": "",
        "chaltype": "standard",
    }


async def seed_flags(
    session: SessionClient,
    endpoint: str,
    flags: Iterable[FlagDefinition],
) -> int:
    """
    Create one challenge per flag, strictly in order.

    Not idempotent: seeding the same flags twice creates duplicates. The
    first failure aborts the remaining flags.

    Returns:
        Number of challenges created

    Raises:
        FlagSeedError: wrapping the first failed fetch or submission
    """
    created = 0
    for flag in flags:
        try:
            nonce = await session.fetch_nonce(endpoint)
            await session.submit_form(
                endpoint,
                challenge_form(flag, nonce),
                encoding=FormEncoding.MULTIPART,
            )
        except ProvisioningError as e:
            logger.error("Flag creation failed", name=flag.name, error=str(e))
            raise FlagSeedError(flag.name, e) from e

        created += 1
        logger.debug("Flag created", name=flag.name, points=flag.points)

    return created
