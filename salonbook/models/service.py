from sqlmodel import Field, SQLModel


class Service(SQLModel, table=True):
    __tablename__ = "services"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    duration_minutes: int = Field(gt=0)
    price: float = 0.0
    active: bool = True

