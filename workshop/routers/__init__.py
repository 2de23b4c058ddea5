# API Routers - Workshop
# Session auth, dev mode impersonation, admin perf dashboard, health probes

from workshop.routers import admin, auth, devmode, health

__all__ = ["admin", "auth", "devmode", "health"]
