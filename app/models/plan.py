from sqlalchemy import Column, Integer, String, Numeric, Float, Boolean, Text, JSON, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class Plan(Base, TimestampMixin):
    __tablename__ = "plans"
    __table_args__ = (UniqueConstraint("provider_id", "slug", name="uq_plans_provider_slug"),)

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)

    # Pricing; NULL usd_price means the provider gave no usable price.
    usd_price = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    prices = Column(JSON, nullable=False, default=dict)
    price_info = Column(Text, nullable=True)

    # Capacity in MB, 0 = unlimited. Period in days.
    capacity = Column(Integer, nullable=False, default=0)
    capacity_info = Column(String(255), nullable=True)
    period = Column(Integer, nullable=False, default=0)
    validity_info = Column(String(255), nullable=True)

    speed_limit = Column(Float, nullable=True)
    reduced_speed = Column(Float, nullable=True)
    possible_throttling = Column(Boolean, nullable=False, default=False)
    is_low_latency = Column(Boolean, nullable=False, default=False)

    has_5g = Column(Boolean, nullable=False, default=False)
    tethering = Column(Boolean, nullable=False, default=False)
    can_top_up = Column(Boolean, nullable=False, default=False)
    phone_number = Column(Boolean, nullable=False, default=False)
    subscription = Column(Boolean, nullable=False, default=False)
    subscription_period = Column(Integer, nullable=True)
    pay_as_you_go = Column(Boolean, nullable=False, default=False)
    new_user_only = Column(Boolean, nullable=False, default=False)
    is_consecutive = Column(Boolean, nullable=False, default=False)
    ekyc = Column(Boolean, nullable=True)

    telephony = Column(JSON, nullable=True)
    coverages = Column(JSON, nullable=False, default=list)
    coverage_count = Column(Integer, nullable=False, default=0)
    internet_breakouts = Column(JSON, nullable=False, default=list)
    additional_info = Column(Text, nullable=True)

    provider = relationship("Provider", back_populates="plans")


Index("ix_plans_provider_price", Plan.provider_id, Plan.usd_price)
