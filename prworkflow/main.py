import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from prworkflow.config import settings
from prworkflow.db import SessionLocal
from prworkflow.errors import WorkflowError
from prworkflow.logging_setup import setup_logging
from prworkflow.routers import auth, notifications, purchase_requests, sap_sync
from prworkflow.security.sessions import install_auth_session_middleware

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title='Purchase Request Workflow')
app.state.session_factory = SessionLocal

install_auth_session_middleware(app)

app.include_router(auth.router)
app.include_router(purchase_requests.router)
app.include_router(sap_sync.router)
app.include_router(notifications.router)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_response_payload(), status_code=exc.http_status)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}


def run() -> None:
    uvicorn.run('prworkflow.main:app', host=settings.app_host, port=settings.app_port, log_config=None)
