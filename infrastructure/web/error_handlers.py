# infrastructure/web/error_handlers.py
from fastapi import Request
from fastapi.responses import JSONResponse

from domain.errors import RefactorError
from shared.logging import logger

# Anything not listed is a client error on the submitted source or intent
ERROR_STATUS = {
    "unknownPolicy": 404,
    "propertyNotFound": 422,
    "targetNotFound": 422,
    "multipleMatches": 409,
    "alreadyHasWrapper": 409,
    "invalidTransition": 409,
    "taskNotApproved": 409,
    "runStoreError": 503,
}


def status_for(error: RefactorError) -> int:
    return ERROR_STATUS.get(error.kind, 400)


async def refactor_error_handler(request: Request, exc: RefactorError) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log("Request failed",
        path=request.url.path,
        error_kind=exc.kind,
        identifier=exc.identifier,
        error=exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())
