from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared by main.py (app.state.limiter) and the routers that decorate endpoints.
limiter = Limiter(key_func=get_remote_address)
