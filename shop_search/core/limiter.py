from slowapi import Limiter
from slowapi.util import get_remote_address

from shop_search.core.constants import MEMBER_ID_HEADER


def get_rate_limit_key(request):
    """Per-member rate limit when a member id is sent; else per IP. Multi-instance needs Redis later."""
    member_id = (request.headers.get(MEMBER_ID_HEADER) or "").strip()
    if member_id.isdigit() and int(member_id) > 0:
        return f"member:{member_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_rate_limit_key)
