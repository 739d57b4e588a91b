"""
Tally Django HTTP adapter.
Thin framework glue over engines.reservation.services.
"""

from adapters.django_api.wiring import build_dependencies, reset_dependencies

__all__ = [
    "build_dependencies",
    "reset_dependencies",
]
