from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from opsdesk.config import settings
from opsdesk.routers import admin, amc, auth, dashboard, hr, inventory, sales, service
from opsdesk.routers import settings as settings_router
from opsdesk.security.headers import install_security_headers
from opsdesk.security.sessions import install_auth_session_middleware
from opsdesk.store import DomainStore

logger = logging.getLogger(__name__)


def _default_store() -> DomainStore:
    if settings.seed_on_startup:
        return DomainStore.from_fixture()
    return DomainStore()


def create_app(store: DomainStore | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, 'store', None) is None
        if owned:
            app.state.store = _default_store()
        yield
        if owned:
            app.state.store.dispose()
            app.state.store = None

    app = FastAPI(title='OpsDesk', lifespan=lifespan)
    app.state.store = store

    install_security_headers(app)
    install_auth_session_middleware(app)

    @app.exception_handler(ValueError)
    async def invalid_input(request: Request, exc: ValueError):
        logger.info('Rejected %s %s: %s', request.method, request.url.path, exc)
        return JSONResponse({'detail': str(exc)}, status_code=400)

    app.include_router(auth.router)
    app.include_router(inventory.router)
    app.include_router(sales.router)
    app.include_router(amc.router)
    app.include_router(service.router)
    app.include_router(hr.router)
    app.include_router(admin.router)
    app.include_router(dashboard.router)
    app.include_router(settings_router.router)

    @app.get('/health')
    def health() -> dict:
        return {'status': 'ok'}

    return app


logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = create_app()
