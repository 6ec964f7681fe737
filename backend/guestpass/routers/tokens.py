"""
访问凭证路由（员工侧签发/校验/撤销）
"""
from datetime import timedelta
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.ontology import Employee
from guestpass.models.schemas import (
    TokenIssueRequest, TokenIssueResponse, TokenRequest, TokenScopeResponse
)
from guestpass.services.token_service import TokenService
from guestpass.security.auth import require_front_desk
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/tokens", tags=["访问凭证"])


@router.post("", response_model=TokenIssueResponse)
def issue_token(
    data: TokenIssueRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """签发凭证"""
    try:
        issued = TokenService(db).issue(
            data.property_id, data.scope_kind, data.scope_id, data.session_ref,
            timedelta(seconds=data.ttl_seconds), issued_by=current_user.id
        )
    except ValueError as e:
        raise to_http_exception(e)
    return TokenIssueResponse(token=issued.token, expires_at=issued.expires_at)


@router.post("/validate", response_model=TokenScopeResponse)
def validate_token(
    data: TokenRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """校验凭证，失败一律 401"""
    try:
        scope = TokenService(db).validate(data.token)
    except ValueError as e:
        raise to_http_exception(e)
    return TokenScopeResponse(
        property_id=scope.property_id,
        scope_kind=scope.scope_kind,
        scope_id=scope.scope_id,
        session_ref=scope.session_ref,
        expires_at=scope.expires_at,
    )


@router.post("/revoke")
def revoke_token(
    data: TokenRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """撤销凭证（幂等）"""
    TokenService(db).revoke(data.token)
    return {"message": "凭证已撤销"}
