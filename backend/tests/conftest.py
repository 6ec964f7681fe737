"""
Pytest 配置和共享 fixtures
"""
import os

# 应用启动时 init_db 使用内存库，避免测试在工作目录写文件
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from datetime import datetime, date, timedelta
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from guestpass.database import Base, get_db
from guestpass.models import ontology  # noqa: F401
from guestpass.models.ontology import (
    EmployeeRole, Property, Room, RoomStatus, RestaurantTable,
    Booking, BookingStatus, CheckInStep, VisitPurpose, MenuItem
)
from guestpass.security.auth import create_access_token
from guestpass.services.employee_service import EmployeeService
from guestpass.services.event_bus import event_bus
from guestpass.main import app


class FrozenClock:
    """可控时钟：注入 TokenService / CheckInService"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clean_event_bus():
    """每个用例使用干净的事件总线"""
    event_bus.clear_subscribers()
    event_bus.clear_history()
    yield
    event_bus.clear_subscribers()
    event_bus.clear_history()


@pytest.fixture
def events():
    """收集服务发布的事件（作为 event_publisher 注入）"""
    published = []
    return published


@pytest.fixture
def frozen_clock():
    return FrozenClock(datetime(2026, 5, 1, 9, 0, 0))


# ============== 认证相关 Fixtures ==============

def _create_employee(db_session, username, name, role):
    return EmployeeService(db_session).create_employee(username, "123456", name, role)


@pytest.fixture
def manager_token(db_session):
    """创建经理用户并返回token"""
    manager = _create_employee(db_session, "manager", "经理", EmployeeRole.MANAGER)
    return create_access_token(manager.id, manager.role)


@pytest.fixture
def receptionist_token(db_session):
    """创建前台用户并返回token"""
    receptionist = _create_employee(db_session, "front1", "前台小王", EmployeeRole.RECEPTIONIST)
    return create_access_token(receptionist.id, receptionist.role)


@pytest.fixture
def kitchen_token(db_session):
    """创建后厨用户并返回token"""
    cook = _create_employee(db_session, "kitchen1", "厨师老张", EmployeeRole.KITCHEN)
    return create_access_token(cook.id, cook.role)


@pytest.fixture
def housekeeper_token(db_session):
    """创建客房服务员并返回token"""
    housekeeper = _create_employee(db_session, "hk1", "客房小李", EmployeeRole.HOUSEKEEPER)
    return create_access_token(housekeeper.id, housekeeper.role)


@pytest.fixture
def manager_auth_headers(manager_token):
    return {"Authorization": f"Bearer {manager_token}"}


@pytest.fixture
def receptionist_auth_headers(receptionist_token):
    return {"Authorization": f"Bearer {receptionist_token}"}


@pytest.fixture
def kitchen_auth_headers(kitchen_token):
    return {"Authorization": f"Bearer {kitchen_token}"}


@pytest.fixture
def housekeeper_auth_headers(housekeeper_token):
    return {"Authorization": f"Bearer {housekeeper_token}"}


# ============== 实体相关 Fixtures ==============

@pytest.fixture
def sample_property(db_session):
    """创建测试物业"""
    prop = Property(name="海景酒店")
    db_session.add(prop)
    db_session.commit()
    db_session.refresh(prop)
    return prop


@pytest.fixture
def other_property(db_session):
    prop = Property(name="城市酒店")
    db_session.add(prop)
    db_session.commit()
    db_session.refresh(prop)
    return prop


def _create_room(db_session, property_id, room_number, floor):
    room = Room(
        property_id=property_id,
        room_number=room_number,
        floor=floor,
        status=RoomStatus.AVAILABLE
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def room_1205(db_session, sample_property):
    """创建1205房间"""
    return _create_room(db_session, sample_property.id, "1205", 12)


@pytest.fixture
def room_1301(db_session, sample_property):
    """创建1301房间"""
    return _create_room(db_session, sample_property.id, "1301", 13)


@pytest.fixture
def sample_table(db_session, sample_property):
    """创建8号餐桌"""
    table = RestaurantTable(property_id=sample_property.id, table_number=8)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def sample_booking(db_session, sample_property):
    """已完成到访目的登记、待分配房间的入住登记"""
    booking = Booking(
        property_id=sample_property.id,
        guests=[{"name": "张三", "id_type": "身份证", "id_number": "110101199001011234", "is_primary": True}],
        purpose=VisitPurpose.LEISURE,
        check_out_date=date(2026, 5, 4),
        identity_verified=True,
        checkin_step=CheckInStep.PURPOSE_CAPTURED,
        status=BookingStatus.PENDING,
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def second_booking(db_session, sample_property):
    booking = Booking(
        property_id=sample_property.id,
        guests=[{"name": "李四", "id_type": None, "id_number": None, "is_primary": True}],
        purpose=VisitPurpose.BUSINESS,
        check_out_date=date(2026, 5, 3),
        identity_verified=True,
        checkin_step=CheckInStep.PURPOSE_CAPTURED,
        status=BookingStatus.PENDING,
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def menu(db_session, sample_property):
    """海景酒店菜单，按名称取菜品；"小龙虾"已下架"""
    items = [
        ("宫保鸡丁", "48.00", "热菜", True),
        ("扬州炒饭", "38.00", "主食", True),
        ("牛肉面", "38.00", "主食", True),
        ("米饭", "3.00", "主食", True),
        ("龙井茶", "12.50", "饮品", True),
        ("可乐", "6.00", "饮品", True),
        ("柠檬水", "0.00", "饮品", True),
        ("小龙虾", "128.00", "热菜", False),
    ]
    created = {}
    for order, (name, price, category, available) in enumerate(items):
        item = MenuItem(property_id=sample_property.id, name=name, price=Decimal(price),
                        category=category, sort_order=order, is_available=available)
        db_session.add(item)
        created[name] = item
    db_session.commit()
    for item in created.values():
        db_session.refresh(item)
    return created
