# slotpay/deps.py
from fastapi import Request

from .config import Settings


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request):
    return request.app.state.gateway
