from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.cabinet.routes import account, nodes, subscription, user
from app.database.database import init_db
from app.logging_config import setup_logging
from app.services.billing_errors import INTERNAL_ERROR_DETAIL


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if app.state.create_schema:
        await init_db()
    logger.info('Cabinet API started')
    yield
    logger.info('Cabinet API stopped')


async def health() -> dict:
    return {'status': 'ok'}


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error', path=request.url.path, method=request.method)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={'detail': INTERNAL_ERROR_DETAIL})


def create_app(*, create_schema: bool = False) -> FastAPI:
    """Build the cabinet API.

    ``create_schema`` runs ``create_all`` on startup; deployments use Alembic.
    """
    setup_logging()

    app = FastAPI(title='Cabinet API', lifespan=lifespan)
    app.state.create_schema = create_schema

    cabinet = APIRouter(prefix='/cabinet')
    cabinet.include_router(subscription.router)
    cabinet.include_router(account.router)
    cabinet.include_router(nodes.router)
    cabinet.include_router(user.router)
    app.include_router(cabinet)
    app.add_api_route('/health', health, methods=['GET'], tags=['Health'])

    app.add_exception_handler(Exception, unhandled_exception_handler)
    return app
