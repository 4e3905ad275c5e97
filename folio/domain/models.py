"""SQLAlchemy ORM models for the catalog, users, reviews and favorites."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    reviews = relationship("Review", back_populates="user", lazy="selectin")
    favorites = relationship(
        "Favorite",
        back_populates="user",
        lazy="selectin",
        order_by="Favorite.id",
    )


class Book(Base):
    __tablename__ = "books"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(300), nullable=False, index=True)
    genres = Column(JSON, default=list)
    published_year = Column(Integer, nullable=True)
    average_rating = Column(Float, default=0.0)
    review_count = Column(Integer, default=0)
    description = Column(Text, default="")
    cover_image = Column(String(1000), default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    reviews = relationship("Review", back_populates="book", lazy="selectin")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    book_id = Column(String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)
    text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="reviews")
    book = relationship("Book", back_populates="reviews")


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "book_id", name="uq_favorite"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # May point at a book that has since left the catalog.
    book_id = Column(String(36), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="favorites")
