# fieldlog/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fieldlog.api.v1.api import api_router
from fieldlog.core.errors import FieldLogError
from fieldlog.core.logging import configure_logging
from fieldlog.db import models
from fieldlog.db.session import engine

# Import the specific router from the auth endpoint file
from fieldlog.api.v1.endpoints import auth

configure_logging()
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="FieldLog Activity API")

@app.exception_handler(FieldLogError)
async def fieldlog_error_handler(request: Request, exc: FieldLogError):
    # Domain errors map straight onto their status code
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Include the main router for all routes prefixed with /api/v1
app.include_router(api_router, prefix="/api/v1")

# Include the auth router separately for the /auth prefix
app.include_router(auth.router, prefix="/auth", tags=["Auth"])

@app.get("/")
def read_root():
    return {"message": "Welcome to the FieldLog Activity API"}
