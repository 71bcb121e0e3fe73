from sqlalchemy import Column, Integer, String, Boolean, Text
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class Provider(Base, TimestampMixin):
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    slug = Column(String(128), nullable=False, unique=True, index=True)
    info = Column(Text, nullable=True)
    image = Column(String(512), nullable=True)
    certified = Column(Boolean, default=False, nullable=False)
    popularity = Column(Integer, default=0, nullable=False)
    plan_count = Column(Integer, default=0, nullable=False)

    plans = relationship("Plan", back_populates="provider", passive_deletes=True)
