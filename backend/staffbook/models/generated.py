from sqlalchemy import Column, DateTime, ForeignKey, Integer, Table, Text, UniqueConstraint, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Services(Base):
    __tablename__ = 'services'

    name = Column(Text, nullable=False)
    duration_min = Column(Integer, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    bookings = relationship('Bookings', back_populates='service')


class Staff(Base):
    __tablename__ = 'staff'

    display_name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    email = Column(Text)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    bookings = relationship('Bookings', back_populates='staff')
    working_hours = relationship('StaffWorkingHours', back_populates='staff')
    integrations = relationship('StaffIntegrations', back_populates='staff')


class StaffWorkingHours(Base):
    __tablename__ = 'staff_working_hours'
    __table_args__ = (
        UniqueConstraint('staff_id', 'day_of_week'),
    )

    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # ISO: 1 = Monday, 7 = Sunday
    start_time = Column(Text, nullable=False)  # "HH:MM"
    end_time = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)

    staff = relationship('Staff', back_populates='working_hours')


class StaffIntegrations(Base):
    __tablename__ = 'staff_integrations'
    __table_args__ = (
        UniqueConstraint('staff_id', 'provider'),
    )

    id = Column(Integer, primary_key=True)
    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    provider = Column(Text, nullable=False, server_default=text("'google_calendar'"))
    access_token = Column(Text)
    refresh_token = Column(Text)
    token_expires_at = Column(Text)
    calendar_id = Column(Text, server_default=text("'primary'"))
    sync_enabled = Column(Integer, server_default=text('1'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    staff = relationship('Staff', back_populates='integrations')


class Customers(Base):
    __tablename__ = 'customers'

    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    phone = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    bookings = relationship('Bookings', back_populates='customer')


class Bookings(Base):
    __tablename__ = 'bookings'

    service_id = Column(ForeignKey('services.id'), nullable=False)
    staff_id = Column(ForeignKey('staff.id', ondelete='CASCADE'), nullable=False)
    # Naive UTC; half-open [date_start, date_end)
    date_start = Column(DateTime, nullable=False)
    date_end = Column(DateTime, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'confirmed'"))
    client_name = Column(Text, nullable=False)
    client_email = Column(Text, nullable=False)
    booking_timezone = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    client_phone = Column(Text)
    notes = Column(Text)
    external_event_id = Column(Text)
    customer_id = Column(ForeignKey('customers.id'))

    service = relationship('Services', back_populates='bookings')
    staff = relationship('Staff', back_populates='bookings')
    customer = relationship('Customers', back_populates='bookings')


t_staff_services = Table(
    'staff_services', metadata,
    Column('service_id', ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
    Column('staff_id', ForeignKey('staff.id', ondelete='CASCADE'), nullable=False),
    Column('is_active', Integer, nullable=False, server_default=text('1')),
    UniqueConstraint('service_id', 'staff_id')
)
