"""
堂食会话路由
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from guestpass.database import get_db
from guestpass.models.ontology import Employee, RestaurantTable, ScopeKind
from guestpass.models.schemas import TableSessionResponse
from guestpass.services.token_service import TokenService
from guestpass.security.auth import require_front_desk
from guestpass.routers.errors import to_http_exception

router = APIRouter(prefix="/tables", tags=["堂食点餐"])


@router.post("/{table_id}/session", response_model=TableSessionResponse)
def start_table_session(
    table_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """开台：为餐桌签发新的点餐凭证"""
    table = db.query(RestaurantTable).filter(RestaurantTable.id == table_id).first()
    if not table:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="餐桌不存在")
    try:
        issued, session_ref = TokenService(db).start_table_session(
            table.property_id, table.id, issued_by=current_user.id
        )
    except ValueError as e:
        raise to_http_exception(e)
    return TableSessionResponse(
        token=issued.token,
        expires_at=issued.expires_at,
        session_ref=session_ref,
        table_id=table.id,
    )


@router.delete("/sessions/{session_ref}")
def end_table_session(
    session_ref: str,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_front_desk)
):
    """结台：撤销该会话下的全部凭证"""
    revoked = TokenService(db).revoke_for_session(ScopeKind.TABLE, session_ref)
    return {"revoked": revoked}
