from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    phone: str | None = None


class User(UserBase, table=True):
    """Subject of bookings and recipient of notifications.

    Accounts are owned by the auth service; this service only reads contact info.
    """

    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
