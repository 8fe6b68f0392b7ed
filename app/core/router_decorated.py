"""
APIRouter whose routes never leak internal errors.

Routes registered on this router re-raise AuthError and FastAPI's own HTTP/validation
errors untouched. A DuplicateKeyError that escapes a store write becomes
AuthError(CONFLICT). Anything else is logged with its traceback and replaced by
AuthError(SOMETHING_WENT_WRONG), which main.py renders as a generic 500.
"""

import logging
from typing import Any, Callable, Coroutine

from fastapi import APIRouter as _APIRouter
from fastapi import HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute

from app.core.errors import AuthError, DuplicateKeyError, ErrorKind

logger = logging.getLogger(__name__)


class BoundaryRoute(APIRoute):
    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_handler = super().get_route_handler()

        async def route_handler(request: Request) -> Response:
            try:
                return await original_handler(request)
            except (AuthError, HTTPException, RequestValidationError):
                raise
            except DuplicateKeyError:
                logger.info("Write conflict on %s %s", request.method, request.url.path)
                raise AuthError(ErrorKind.CONFLICT)
            except Exception:
                logger.exception("Unhandled error on %s %s", request.method, request.url.path)
                raise AuthError(ErrorKind.SOMETHING_WENT_WRONG)

        return route_handler


class APIRouter(_APIRouter):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("route_class", BoundaryRoute)
        super().__init__(*args, **kwargs)
