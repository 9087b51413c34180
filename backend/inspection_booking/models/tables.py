from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
    true,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata

# Appointment statuses that occupy capacity
ACTIVE_STATUSES = ("pending", "confirmed")


t_center_services = Table(
    'center_services', metadata,
    Column('center_id', ForeignKey('centers.id', ondelete='CASCADE'), primary_key=True),
    Column('service_type_id', ForeignKey('service_types.id', ondelete='CASCADE'), primary_key=True),
)


class Centers(Base):
    __tablename__ = 'centers'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    city = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    capacity_per_slot = Column(Integer, nullable=False, server_default=text('1'))
    slot_duration_minutes = Column(Integer, nullable=False, server_default=text('20'))
    working_hours = Column(Text, nullable=False, server_default=text("'{}'"))
    timezone = Column(Text, nullable=False, server_default=text("'Africa/Casablanca'"))
    is_active = Column(Boolean, nullable=False, server_default=true())
    created_at = Column(DateTime, server_default=func.current_timestamp())
    updated_at = Column(DateTime, server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    services = relationship('ServiceTypes', secondary=t_center_services, back_populates='centers')
    blackout_days = relationship(
        'BlackoutDays',
        back_populates='center',
        cascade='all, delete-orphan',
        order_by='BlackoutDays.date',
    )
    slots = relationship('Slots', back_populates='center')
    appointments = relationship('Appointments', back_populates='center')


class ServiceTypes(Base):
    __tablename__ = 'service_types'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text)
    duration_minutes = Column(Integer)
    is_active = Column(Boolean, nullable=False, server_default=true())

    centers = relationship('Centers', secondary=t_center_services, back_populates='services')
    appointments = relationship('Appointments', back_populates='service_type')


class BlackoutDays(Base):
    __tablename__ = 'blackout_days'
    __table_args__ = (
        UniqueConstraint('center_id', 'date'),
    )

    id = Column(Integer, primary_key=True)
    center_id = Column(ForeignKey('centers.id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)  # YYYY-MM-DD, center-local
    reason = Column(Text)

    center = relationship('Centers', back_populates='blackout_days')


class Slots(Base):
    __tablename__ = 'slots'
    __table_args__ = (
        UniqueConstraint('center_id', 'date', 'start_time'),
        Index('ix_slots_center_range', 'center_id', 'start_at', 'end_at'),
    )

    id = Column(Integer, primary_key=True)
    center_id = Column(ForeignKey('centers.id', ondelete='CASCADE'), nullable=False)
    date = Column(Text, nullable=False)        # YYYY-MM-DD, center-local
    start_time = Column(Text, nullable=False)  # HH:MM, center-local
    end_time = Column(Text, nullable=False)
    start_at = Column(DateTime, nullable=False)  # UTC
    end_at = Column(DateTime, nullable=False)    # UTC
    capacity = Column(Integer, nullable=False)
    taken_count = Column(Integer, nullable=False, server_default=text('0'))
    available = Column(Boolean, nullable=False, server_default=true())
    status = Column(Text, nullable=False, server_default=text("'available'"))

    center = relationship('Centers', back_populates='slots')


class Appointments(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        Index('ix_appointments_center_range', 'center_id', 'start_at', 'end_at'),
        Index('ix_appointments_status_start', 'status', 'start_at'),
    )

    id = Column(Integer, primary_key=True)
    reference = Column(Text, nullable=False, unique=True)

    # customer snapshot taken at booking time
    customer_name = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    vehicle_plate = Column(Text, nullable=False)
    customer_notes = Column(Text)

    center_id = Column(ForeignKey('centers.id'), nullable=False)
    service_type_id = Column(ForeignKey('service_types.id'), nullable=False)
    start_at = Column(DateTime, nullable=False)  # UTC
    end_at = Column(DateTime, nullable=False)    # UTC
    seat = Column(Integer, nullable=False, server_default=text('0'))
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    cancel_reason = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(
        DateTime,
        nullable=False,
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
    )

    center = relationship('Centers', back_populates='appointments')
    service_type = relationship('ServiceTypes', back_populates='appointments')


# One seat per (center, start) among active bookings. With capacity N the
# seats are 0..N-1, so at most N active appointments can share a start.
Index(
    'uq_appointments_active_seat',
    Appointments.center_id,
    Appointments.start_at,
    Appointments.seat,
    unique=True,
    sqlite_where=Appointments.status.in_(ACTIVE_STATUSES),
    postgresql_where=Appointments.status.in_(ACTIVE_STATUSES),
)
