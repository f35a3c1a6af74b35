"""FastAPI dependency injection helpers.

Usage in a route::

    @router.get("/thing")
    async def get_thing(
        engine: Annotated[PortalEngine, Depends(get_engine)],
    ) -> ...:
        ...
"""

from __future__ import annotations

from fastapi import Request

from btc_portal.engine.client import PortalEngine  # noqa: TC001
from btc_portal.errors.definitions import ErrEngineNotReady


def get_engine(request: Request) -> PortalEngine:
    """Retrieve the engine from ``app.state``.

    The engine is stored on ``app.state.engine`` during lifespan startup.

    Raises:
        PortalError: ``ErrEngineNotReady`` if startup has not completed.
    """
    engine: PortalEngine | None = getattr(request.app.state, "engine", None)
    if engine is None or not engine.is_initialized:
        raise ErrEngineNotReady
    return engine
