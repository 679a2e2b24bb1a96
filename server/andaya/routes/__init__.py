"""API routers."""

from andaya.routes import account, admin, functions, health, reservations, vehicles

__all__ = ["account", "admin", "functions", "health", "reservations", "vehicles"]
