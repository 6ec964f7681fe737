# Security
from guestpass.security.auth import (
    get_password_hash, verify_password, create_access_token, decode_token,
    get_current_user, require_role, require_manager, require_front_desk,
    require_kitchen_staff, require_housekeeping_staff
)
from guestpass.security.guest import get_guest_token, GUEST_TOKEN_HEADER

__all__ = [
    'get_password_hash', 'verify_password', 'create_access_token', 'decode_token',
    'get_current_user', 'require_role', 'require_manager', 'require_front_desk',
    'require_kitchen_staff', 'require_housekeeping_staff',
    'get_guest_token', 'GUEST_TOKEN_HEADER'
]
