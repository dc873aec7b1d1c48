# Import all models to ensure they are registered with SQLAlchemy
from . import (
    category,
    service,
    service_listing,
)

__all__ = [
    "category",
    "service",
    "service_listing",
]
