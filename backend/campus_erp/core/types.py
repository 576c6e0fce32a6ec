"""Custom SQLAlchemy types for cross-database compatibility"""
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import TypeDecorator, String, Numeric
import uuid

CENTS = Decimal("0.01")


def generate_uuid():
    """Generate a UUID string"""
    return str(uuid.uuid4())


def to_money(value) -> Decimal:
    """Coerce a number to a Decimal rounded half-up to 2 places"""
    if value is None:
        value = 0
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class GUID(TypeDecorator):
    """Platform-independent GUID type that stores UUIDs as VARCHAR(36)"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return str(value)
        return value


class Money(TypeDecorator):
    """Currency amount, always read back as a 2-place Decimal"""
    impl = Numeric(12, 2)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return to_money(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return to_money(value)
