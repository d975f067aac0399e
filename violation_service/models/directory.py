"""
Trip / ticket / organization directory.

These tables are owned by other services; this service only reads them to scope
queries and to check who is entitled to act on a violation.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from violation_service.core.constants import OrganizationType
from violation_service.models.base import Base, enum_column_type


class Organization(Base):
    __tablename__ = 'organizations'

    id = Column(Uuid, primary_key=True)
    name = Column(String(255), nullable=False)
    type = Column(enum_column_type(OrganizationType, 'organization_type'), nullable=False)
    parent_org_id = Column(Uuid, ForeignKey('organizations.id'))
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Organization {self.name} ({self.type.value})>"


class Driver(Base):
    __tablename__ = 'drivers'

    id = Column(Uuid, primary_key=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(32))


class Vehicle(Base):
    __tablename__ = 'vehicles'

    id = Column(Uuid, primary_key=True)
    plate_number = Column(String(32), nullable=False)
    brand = Column(String(64))
    model = Column(String(64))


class CleaningArea(Base):
    __tablename__ = 'cleaning_areas'

    id = Column(Uuid, primary_key=True)
    name = Column(Text, nullable=False)


class Polygon(Base):
    __tablename__ = 'polygons'

    id = Column(Uuid, primary_key=True)
    name = Column(Text, nullable=False)


class Ticket(Base):
    __tablename__ = 'tickets'

    id = Column(Uuid, primary_key=True)
    contractor_id = Column(Uuid, ForeignKey('organizations.id'), nullable=False)
    cleaning_area_id = Column(Uuid, ForeignKey('cleaning_areas.id'))
    status = Column(String(32))
    planned_start_at = Column(DateTime(timezone=True))
    planned_end_at = Column(DateTime(timezone=True))

    contractor = relationship("Organization")
    cleaning_area = relationship("CleaningArea")


class Trip(Base):
    __tablename__ = 'trips'

    id = Column(Uuid, primary_key=True)
    ticket_id = Column(Uuid, ForeignKey('tickets.id'))
    driver_id = Column(Uuid, ForeignKey('drivers.id'))
    vehicle_id = Column(Uuid, ForeignKey('vehicles.id'))
    polygon_id = Column(Uuid, ForeignKey('polygons.id'))
    status = Column(String(32))
    entry_at = Column(DateTime(timezone=True))
    violation_reason = Column(Text)

    ticket = relationship("Ticket")
    driver = relationship("Driver")
    vehicle = relationship("Vehicle")
    polygon = relationship("Polygon")

    def __repr__(self):
        return f"<Trip {self.id} ({self.status})>"
