"""Service and professional catalog models."""

from pydantic import BaseModel, Field


class Service(BaseModel):
    """A bookable service. ``duration`` (minutes) sizes the booking footprint."""
    id: int
    name: str
    price: float
    duration: int = Field(default=60, gt=0)


class Professional(BaseModel):
    """A groomer. Availability is always computed per professional."""
    id: int
    name: str
