from sqlalchemy import Column, String, Float, Integer, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

class Item(Base):
    __tablename__ = "items"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    width = Column(Float, nullable=False)
    depth = Column(Float, nullable=False)
    height = Column(Float, nullable=False)
    mass = Column(Float, nullable=False, default=0.0)
    priority = Column(Integer, nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    uses_left = Column(Integer, nullable=True)
    preferred_zone = Column(String, nullable=False)
    container_id = Column(String, ForeignKey("containers.id"), nullable=True)
    position = Column(JSON(none_as_null=True), nullable=True)  # {"startCoordinates": {...}, "endCoordinates": {...}}
    is_waste = Column(Boolean, default=False, nullable=False)
    waste_reason = Column(String, nullable=True)

    container = relationship("Container", back_populates="items")

class Container(Base):
    __tablename__ = "containers"

    id = Column(String, primary_key=True)
    zone = Column(String, nullable=False)
    width = Column(Float, nullable=False)
    depth = Column(Float, nullable=False)
    height = Column(Float, nullable=False)
    max_weight = Column(Float, nullable=False)
    current_weight = Column(Float, nullable=False, default=0.0)
    item_count = Column(Integer, nullable=False, default=0)
    utilization = Column(Float, nullable=False, default=0.0)  # percent of volume, summed per item

    items = relationship("Item", back_populates="container")

class Log(Base):
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    user_id = Column(String, nullable=False)
    action_type = Column(String, nullable=False)
    # No foreign key: entries outlive deleted items
    item_id = Column(String, nullable=False)
    container_id = Column(String, nullable=True)
    details = Column(JSON(none_as_null=True), nullable=True)  # Additional action details as JSON
