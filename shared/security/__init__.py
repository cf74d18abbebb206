from .api_key import verify_api_key
from .dependencies import verify_internal_api_key

__all__ = [
    "verify_api_key",
    "verify_internal_api_key",
]
