"""Customer and pet records."""

from pydantic import BaseModel


class Customer(BaseModel):
    """Customer record, unique per phone number."""
    id: int
    phone: str
    owner_name: str


class Pet(BaseModel):
    """Pet registered under a customer."""
    id: int
    customer_id: int
    name: str
