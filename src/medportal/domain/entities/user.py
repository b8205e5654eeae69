from datetime import datetime, timezone  # For timestamp fields
from enum import Enum  # For type-safe role enumeration
from typing import Optional  # For optional fields

from sqlalchemy import DateTime  # Explicit DateTime type
from sqlmodel import Column, Field, SQLModel, String  # For ORM and table definition


class Role(str, Enum):
    """Represents the role of a portal account.

    Attributes:
        PATIENT: A patient managing their own profile and records.
        DOCTOR: A clinician with access to assigned patients.
        ADMIN: Portal administration.
    """

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """Represents a portal account as the token service sees it.

    Only the columns the authentication slice needs are modelled: identity,
    credentials, role and the active flag consulted on every refresh.

    Attributes:
        id: The unique identifier for the user (primary key).
        email: Unique, case-insensitive login email.
        hashed_password: Bcrypt hash of the password.
        role: Role embedded in issued tokens.
        is_active: Inactive accounts can neither log in nor refresh.
        created_at: When the account was created.
    """

    __tablename__ = "users"
    __table_args__ = {"extend_existing": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(
        sa_column=Column(String, unique=True, index=True, nullable=False),
        description="Unique, case-insensitive email address used to log in.",
    )
    hashed_password: str = Field(max_length=255, description="Bcrypt-hashed password.")
    role: str = Field(
        default=Role.PATIENT.value,
        sa_column=Column(String(16), nullable=False, default=Role.PATIENT.value),
    )
    is_active: bool = Field(default=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
