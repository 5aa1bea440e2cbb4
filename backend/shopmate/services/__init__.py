# Overview: Builds the core components around one injected storage handle.

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from .credential_store import CredentialStore
from .inventory_ledger import InventoryLedger
from .purchase_service import PurchaseCoordinator
from .token_authority import TokenAuthority

EXTENSION_KEY = "shopmate.services"


@dataclass
class Services:
    credentials: CredentialStore
    tokens: TokenAuthority
    ledger: InventoryLedger
    purchases: PurchaseCoordinator


def build_services(session, config) -> Services:
    """
    Wire the components to `session`.

    `session` is normally Flask-SQLAlchemy's scoped db.session, which hands
    each request its own session and releases it at teardown. Tests may pass
    any object with the SQLAlchemy Session interface.
    """
    credentials = CredentialStore(session, bcrypt_rounds=config["BCRYPT_ROUNDS"])
    ledger = InventoryLedger(session)
    return Services(
        credentials=credentials,
        tokens=TokenAuthority(
            session,
            credentials=credentials,
            access_secret=config["ACCESS_TOKEN_SECRET"],
            refresh_secret=config["REFRESH_TOKEN_SECRET"],
            algorithm=config["JWT_ALGORITHM"],
            access_ttl=timedelta(minutes=config["ACCESS_TOKEN_TTL_MINUTES"]),
            refresh_ttl=timedelta(days=config["REFRESH_TOKEN_TTL_DAYS"]),
        ),
        ledger=ledger,
        purchases=PurchaseCoordinator(
            session,
            ledger,
            retry_attempts=config["PURCHASE_RETRY_ATTEMPTS"],
        ),
    )


def get_services() -> Services:
    """Components of the current Flask application."""
    return current_app.extensions[EXTENSION_KEY]
