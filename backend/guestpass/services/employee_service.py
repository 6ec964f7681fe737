"""
员工账号与登录（仅员工侧接口使用，客人不持有账号）
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
from guestpass.models.ontology import Employee, EmployeeRole
from guestpass.security.auth import get_password_hash, verify_password, create_access_token

logger = logging.getLogger(__name__)


class EmployeeService:

    def __init__(self, db: Session):
        self.db = db

    def get_employee_by_username(self, username: str) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.username == username).first()

    def create_employee(self, username: str, password: str, name: str, role: EmployeeRole) -> Employee:
        """创建员工账号，用户名唯一"""
        if self.get_employee_by_username(username):
            raise ValueError(f"用户名 '{username}' 已存在")

        account = Employee(
            username=username,
            password_hash=get_password_hash(password),
            name=name,
            role=EmployeeRole(role),
        )
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        logger.info(f"Employee account {username} created with role {account.role.value}")
        return account

    def authenticate(self, username: str, password: str) -> Optional[dict]:
        """
        校验用户名密码，成功返回令牌与员工信息
        用户不存在与密码错误同样返回 None；停用账号抛 ValueError
        """
        account = self.get_employee_by_username(username)
        if account is None or not verify_password(password, account.password_hash):
            logger.info(f"Login failed for {username}")
            return None
        if not account.is_active:
            raise ValueError("账号已停用")

        return {
            "access_token": create_access_token(account.id, account.role),
            "token_type": "bearer",
            "employee": {
                "id": account.id,
                "username": account.username,
                "name": account.name,
                "role": account.role,
                "is_active": account.is_active,
            },
        }
