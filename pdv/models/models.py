from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship as orm_relationship

from ..config import Base
from ..constants import ACCOUNT_STATUSES, ACCOUNT_TYPES, MOVEMENT_TYPES


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False, default="")
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    products = orm_relationship("Product", back_populates="user")
    clients = orm_relationship("Client", back_populates="user")
    accounts = orm_relationship("Account", back_populates="user")
    movements = orm_relationship("Movement", back_populates="user")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = orm_relationship("User", back_populates="products")
    movements = orm_relationship("Movement", back_populates="product")


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    company_name = Column(String(100), nullable=False)
    cnpj = Column(String(20), nullable=True)
    email = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(50), nullable=True)
    state = Column(String(2), nullable=True)
    zip_code = Column(String(10), nullable=True)
    contact_person = Column(String(100), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = orm_relationship("User", back_populates="clients")


class Account(Base):
    """Accounts payable ("pagar") and receivable ("receber")."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(*ACCOUNT_TYPES, name="account_type"), nullable=False)
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    category = Column(String(100), nullable=True)
    supplier_customer = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(Enum(*ACCOUNT_STATUSES, name="account_status"), default="pendente", nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = orm_relationship("User", back_populates="accounts")
    payments = orm_relationship("AccountPayment", back_populates="account", cascade="all, delete-orphan")


class AccountPayment(Base):
    __tablename__ = "account_payments"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    account = orm_relationship("Account", back_populates="payments")


class Movement(Base):
    """Stock movement: "entrada" adds to a product's stock, "saida" removes from it."""

    __tablename__ = "movements"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    type = Column(Enum(*MOVEMENT_TYPES, name="movement_type"), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    product = orm_relationship("Product", back_populates="movements")
    user = orm_relationship("User", back_populates="movements")
