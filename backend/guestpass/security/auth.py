"""
员工认证与授权
员工侧接口使用 JWT Bearer + 角色校验；客人侧只认访问凭证（见 guest.py），
两类凭证互不通用。
"""
import bcrypt
import logging
from datetime import datetime, timedelta, UTC
from typing import Iterable
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from guestpass.config import settings
from guestpass.database import get_db
from guestpass.models.ontology import Employee, EmployeeRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def create_access_token(employee_id: int, role: EmployeeRole) -> str:
    """签发员工 JWT，载荷只含员工 ID、角色和过期时间"""
    claims = {
        "sub": str(employee_id),
        "role": EmployeeRole(role).value,
        "exp": datetime.now(UTC) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise _unauthorized("无效的认证凭证")


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Employee:
    """
    解析 Bearer 令牌得到当前员工
    员工被停用或角色在签发后被调整时，旧令牌一律失效
    """
    claims = decode_token(credentials.credentials)
    try:
        employee_id = int(claims.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("无效的认证凭证")

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise _unauthorized("用户不存在")
    if not employee.is_active:
        raise _unauthorized("账号已停用")
    if claims.get("role") != employee.role.value:
        logger.info(f"Employee {employee.id} presented a token issued for role {claims.get('role')}")
        raise _unauthorized("角色已变更，请重新登录")

    return employee


def require_role(allowed_roles: Iterable[EmployeeRole]):
    """生成角色校验依赖"""
    allowed = frozenset(allowed_roles)

    async def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        if current_user.role not in allowed:
            logger.info(f"Employee {current_user.id} ({current_user.role.value}) denied")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="权限不足")
        return current_user
    return role_checker


# 按岗位划分的角色检查器
require_manager = require_role([EmployeeRole.MANAGER])
require_front_desk = require_role([EmployeeRole.MANAGER, EmployeeRole.RECEPTIONIST])
require_kitchen_staff = require_role([EmployeeRole.MANAGER, EmployeeRole.RECEPTIONIST, EmployeeRole.KITCHEN])
require_housekeeping_staff = require_role([EmployeeRole.MANAGER, EmployeeRole.RECEPTIONIST, EmployeeRole.HOUSEKEEPER])
