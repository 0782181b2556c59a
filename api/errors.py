"""
Domain exception -> HTTPException

    NotFound          -> 404
    Unauthorized      -> 403
    AlreadyExists     -> 409
    其他遊戲異常       -> 400
"""
from fastapi import HTTPException

from core.exceptions import LeagueGameException, NotFound, Unauthorized, AlreadyExists


def to_http_exception(error: LeagueGameException) -> HTTPException:
    if isinstance(error, NotFound):
        status_code = 404
    elif isinstance(error, Unauthorized):
        status_code = 403
    elif isinstance(error, AlreadyExists):
        status_code = 409
    else:
        status_code = 400
    return HTTPException(
        status_code=status_code,
        detail={"error": type(error).__name__, "message": str(error)}
    )
