"""
业务错误定义
服务层沿用 ValueError 约定，子类携带稳定的错误码供路由层映射 HTTP 状态
"""


class GuestPassError(ValueError):
    """业务错误基类"""
    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)


# ============== 校验错误 ==============

class LedgerValidationError(GuestPassError):
    """订单或服务请求数据不合法"""
    code = "validation_error"


class InvalidScope(GuestPassError):
    """凭证作用对象不存在于该物业"""
    code = "invalid_scope"


class CheckInStepError(GuestPassError):
    """入住流程步骤顺序错误"""
    code = "checkin_step_error"


# ============== 状态冲突 ==============

class StateConflict(GuestPassError):
    """状态冲突，调用方应重新读取后重试"""
    code = "state_conflict"


class RoomNotAvailable(StateConflict):
    """房间不可分配，请选择其他房间"""
    code = "room_not_available"


class InvalidTransition(StateConflict):
    """非法的状态转换"""
    code = "invalid_transition"


class RoomOccupied(StateConflict):
    """房间有住客，请先办理退房"""
    code = "room_occupied"


# ============== 查找 ==============

class EntryNotFound(GuestPassError):
    """记录不存在"""
    code = "not_found"


# ============== 访问凭证 ==============

class TokenInvalid(GuestPassError):
    """访问凭证无效"""
    code = "token_invalid"


class TokenMalformed(TokenInvalid):
    """访问凭证格式错误或不存在"""
    code = "token_malformed"


class TokenExpired(TokenInvalid):
    """访问凭证已过期"""
    code = "token_expired"


class TokenRevoked(TokenInvalid):
    """访问凭证已撤销"""
    code = "token_revoked"


class Unauthorized(GuestPassError):
    """无效或已失效的访问凭证"""
    code = "unauthorized"
