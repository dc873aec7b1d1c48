from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Service(Base):
    """Bookable service offered under a listing, tagged with categories."""

    __tablename__ = "services"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(
        Integer,
        ForeignKey("service_listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)

    # Legacy single category
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)

    # Denormalized root-to-leaf paths, one per tag: [[{"id": .., "name": ..}, ..], ..]
    category_paths = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, default=True, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    listing = relationship("ServiceListing", back_populates="services")
    tags = relationship(
        "ServiceCategoryTag",
        back_populates="service",
        cascade="all, delete-orphan",
        order_by="ServiceCategoryTag.position",
        lazy="selectin",
    )

    @property
    def category_ids(self) -> list[int]:
        """Tagged category ids in assignment order."""
        return [tag.category_id for tag in self.tags]

    def __repr__(self):
        return (
            f"<Service(id={self.id}, name='{self.name}', "
            f"category_ids={self.category_ids})>"
        )


class ServiceCategoryTag(Base):
    """Ordered many-to-many link between services and categories."""

    __tablename__ = "service_category_tags"

    service_id = Column(
        Integer, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True
    )
    # No FK: tags are a denormalized list and may outlive their category
    category_id = Column(Integer, primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)

    service = relationship("Service", back_populates="tags")

    def __repr__(self):
        return (
            f"<ServiceCategoryTag(service_id={self.service_id}, "
            f"category_id={self.category_id}, position={self.position})>"
        )
