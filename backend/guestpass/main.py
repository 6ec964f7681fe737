"""
GuestPass 主应用入口
酒店扫码自助服务：房间/餐桌访问凭证、房态、订单与服务请求、入住向导
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from guestpass.config import settings
from guestpass.database import init_db
from guestpass.routers import auth, properties, menu, tokens, rooms, checkin, tables, orders, service_requests, guest

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时初始化数据库，并加载状态机定义
    init_db()
    from guestpass.core.state_machine import state_machine_engine
    import guestpass.services  # noqa: F401  注册房间/订单/服务请求状态机
    logger.info(f"{settings.APP_NAME} started, state machines: {sorted(state_machine_engine.get_all())}")

    yield


# 创建应用
app = FastAPI(
    title="GuestPass - 酒店扫码自助服务",
    description="基于访问凭证的客房/餐桌自助点餐与服务请求",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(auth.router)
app.include_router(properties.router)
app.include_router(menu.router)
app.include_router(tokens.router)
app.include_router(rooms.router)
app.include_router(checkin.router)
app.include_router(tables.router)
app.include_router(orders.router)
app.include_router(service_requests.router)
app.include_router(guest.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
