"""
Shared FastAPI dependencies.
"""

import logging

from fastapi import HTTPException, Request

from i2s_arbiter.arbiter import Arbiter

logger = logging.getLogger(__name__)


def get_arbiter(request: Request) -> Arbiter:
    """
    Return the ``Arbiter`` created by the application lifespan.

    Raises **503** if the lifespan has not run (or has already shut down).
    """
    arbiter = getattr(request.app.state, "arbiter", None)
    if arbiter is None:
        logger.error("Request received before the arbiter was started")
        raise HTTPException(status_code=503, detail="Arbiter is not running")
    return arbiter
