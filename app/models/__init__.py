"""Database models"""

from app.models.customer import Customer
from app.models.reservation import Reservation, ReservationTableAssignment
from app.models.table import RestaurantTable, RestaurantSchedule
from app.models.user import Profile, UserRole

__all__ = [
    "Customer",
    "Reservation",
    "ReservationTableAssignment",
    "RestaurantTable",
    "RestaurantSchedule",
    "Profile",
    "UserRole",
]
