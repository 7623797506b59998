"""Host API routers."""
