"""Tag model and the product/tag association table."""

from typing import TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, String, Table
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopsearch.models.base import Base

if TYPE_CHECKING:
    from shopsearch.models.product import Product

product_tags = Table(
    "product_tags",
    Base.metadata,
    Column(
        "product_id",
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        UUID(as_uuid=True),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Tag(Base):
    """Free-form product tag, addressed by slug in search filters."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    products: Mapped[list["Product"]] = relationship(
        "Product",
        secondary=product_tags,
        back_populates="tags",
    )

    def __repr__(self) -> str:
        return f"<Tag {self.slug}>"
