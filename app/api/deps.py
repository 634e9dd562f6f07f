"""Shared API dependencies

The data source and the shared reservation store are built by the
application lifespan and kept on ``app.state``; tests override these
dependencies with in-memory fakes.
"""

from fastapi.requests import HTTPConnection

from app.services.data_source import DataSource
from app.services.reservation_store import ReservationStore


def get_data_source(connection: HTTPConnection) -> DataSource:
    return connection.app.state.data_source


def get_reservation_store(connection: HTTPConnection) -> ReservationStore:
    return connection.app.state.reservation_store
