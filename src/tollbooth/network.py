import logging

import httpx

DEFAULT_PROBE_URL = "http://google.com/generate_204"


async def has_internet(url: str = DEFAULT_PROBE_URL, timeout: float = 5.0, client=None) -> bool:
    """Best-effort reachability probe: True if ``url`` answers at all."""
    logger = logging.getLogger("tollbooth")
    try:
        if client is not None:
            await client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient() as probe:
                await probe.get(url, timeout=timeout)
        return True
    except httpx.HTTPError as e:
        logger.debug(f"network probe failed url={url}: {e}")
        return False
