"""Routers package."""

from . import (
    health,
    auth,
    coins,
    payments,
    ai,
)
