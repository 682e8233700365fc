from .routes import router, get_scan_service

__all__ = ["router", "get_scan_service"]
