from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Category(Base):
    """Marketplace category with unlimited parent/child nesting."""

    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("parent_id", "slug", name="uq_categories_parent_slug"),
    )

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Hierarchical structure
    parent_id = Column(
        Integer, ForeignKey("categories.id"), nullable=True, index=True
    )
    sort_order = Column(Integer, default=0, nullable=False)

    # Soft delete: inactive categories stay for historical listings
    is_active = Column(Boolean, default=True, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships (never lazy-loaded from async code, see CategoryStore)
    parent = relationship("Category", remote_side=[id], back_populates="children")
    children = relationship(
        "Category", back_populates="parent", passive_deletes=True
    )

    def __repr__(self):
        return (
            f"<Category(id={self.id}, name='{self.name}', "
            f"parent_id={self.parent_id}, active={self.is_active})>"
        )
