import enum

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class ListingStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"


class ServiceListing(Base):
    """Vendor listing that groups one or more bookable services."""

    __tablename__ = "service_listings"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Legacy primary category
    category_id = Column(
        Integer, ForeignKey("categories.id"), nullable=True, index=True
    )

    # Search attributes
    status = Column(String(20), nullable=False, default=ListingStatus.ACTIVE.value)
    rating = Column(Float, nullable=False, default=0.0)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    category = relationship("Category", lazy="selectin")
    services = relationship(
        "Service",
        back_populates="listing",
        lazy="selectin",
        order_by="Service.id",
        passive_deletes=True,
    )

    def __repr__(self):
        return (
            f"<ServiceListing(id={self.id}, title='{self.title}', "
            f"category_id={self.category_id}, status={self.status})>"
        )
