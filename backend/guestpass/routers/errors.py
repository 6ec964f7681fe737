"""
业务错误到 HTTP 状态码的映射
"""
from fastapi import HTTPException, status
from guestpass.services.errors import (
    EntryNotFound, StateConflict, TokenInvalid, Unauthorized
)


def to_http_exception(e: ValueError) -> HTTPException:
    """服务层 ValueError -> HTTPException"""
    if isinstance(e, (Unauthorized, TokenInvalid)):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(Unauthorized()))
    if isinstance(e, EntryNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, StateConflict):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
