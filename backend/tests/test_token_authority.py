"""
Token authority tests.

Verifies:
- Access tokens verify statelessly and expire after their lifetime
- Refresh tokens only work while their stored row exists
- The two kinds of token are never interchangeable
"""

from datetime import timedelta

import pytest
from jose import jwt
from sqlalchemy import delete, func, select

from shopmate.errors import Forbidden, InvalidInput, InvalidToken, NotFound
from shopmate.extensions import db
from shopmate.models import ROLE_ADMIN, ROLE_USER, RefreshToken, User
from shopmate.services import get_services
from shopmate.services.token_authority import TokenAuthority, hash_token
from shopmate.time_utils import utcnow


def make_authority(app, **overrides) -> TokenAuthority:
    """TokenAuthority with the app's secrets and optional overrides."""
    options = {
        "credentials": get_services().credentials,
        "access_secret": app.config["ACCESS_TOKEN_SECRET"],
        "refresh_secret": app.config["REFRESH_TOKEN_SECRET"],
    }
    options.update(overrides)
    return TokenAuthority(db.session, **options)


def stored_token_count() -> int:
    return db.session.scalar(select(func.count()).select_from(RefreshToken))


class TestIssueSession:

    def test_returns_both_tokens_and_role(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        assert session.access_token
        assert session.refresh_token
        assert session.role == ROLE_USER
        assert session.to_dict() == {
            "accessToken": session.access_token,
            "refreshToken": session.refresh_token,
            "role": ROLE_USER,
        }

    def test_stores_only_the_hash(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        row = db.session.execute(select(RefreshToken)).scalar_one()
        assert row.user_id == customer.id
        assert row.token_hash == hash_token(session.refresh_token)
        assert row.token_hash != session.refresh_token

    def test_each_login_gets_a_distinct_refresh_token(self, services, customer):
        first = services.tokens.issue_session(customer.id, customer.role)
        second = services.tokens.issue_session(customer.id, customer.role)
        assert first.refresh_token != second.refresh_token
        assert stored_token_count() == 2


class TestVerifyAccess:

    def test_valid_token(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        claims = services.tokens.verify_access(session.access_token)
        assert claims.user_id == customer.id
        assert claims.role == ROLE_USER

    def test_still_valid_just_before_expiry(self, app, services, customer):
        almost = make_authority(app, clock=lambda: utcnow() - timedelta(minutes=59))
        token = almost.issue_session(customer.id, customer.role).access_token
        assert services.tokens.verify_access(token).user_id == customer.id

    def test_expired(self, app, services, customer):
        stale = make_authority(app, clock=lambda: utcnow() - timedelta(hours=2))
        token = stale.issue_session(customer.id, customer.role).access_token
        with pytest.raises(InvalidToken):
            services.tokens.verify_access(token)

    def test_signed_with_another_secret(self, app, services, customer):
        forged = make_authority(app, access_secret="attacker-secret")
        token = forged.issue_session(customer.id, ROLE_ADMIN).access_token
        with pytest.raises(InvalidToken):
            services.tokens.verify_access(token)

    def test_tampered_payload(self, services, customer):
        token = services.tokens.issue_session(customer.id, customer.role).access_token
        header, _, signature = token.split(".")
        forged_payload = jwt.encode(
            {"sub": str(customer.id), "role": ROLE_ADMIN, "type": "access"},
            "irrelevant",
        ).split(".")[1]
        with pytest.raises(InvalidToken):
            services.tokens.verify_access(f"{header}.{forged_payload}.{signature}")

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c", None])
    def test_malformed(self, services, token):
        with pytest.raises(InvalidToken):
            services.tokens.verify_access(token)

    def test_refresh_token_is_not_an_access_token(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        with pytest.raises(InvalidToken):
            services.tokens.verify_access(session.refresh_token)

    def test_type_claim_is_checked(self, app, services, customer):
        # Same secret on both sides; only the type claim tells them apart
        shared = make_authority(app, refresh_secret=app.config["ACCESS_TOKEN_SECRET"])
        session = shared.issue_session(customer.id, customer.role)
        with pytest.raises(InvalidToken):
            services.tokens.verify_access(session.refresh_token)


class TestRefreshAccess:

    def test_new_access_token(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        access_token = services.tokens.refresh_access(session.refresh_token)
        claims = services.tokens.verify_access(access_token)
        assert claims.user_id == customer.id
        assert claims.role == ROLE_USER

    def test_refresh_does_not_consume_the_token(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        services.tokens.refresh_access(session.refresh_token)
        services.tokens.refresh_access(session.refresh_token)
        assert stored_token_count() == 1

    def test_role_comes_from_the_user_row(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        customer.role = ROLE_ADMIN
        db.session.commit()

        access_token = services.tokens.refresh_access(session.refresh_token)
        assert services.tokens.verify_access(access_token).role == ROLE_ADMIN

    def test_access_token_is_not_a_refresh_token(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        with pytest.raises(InvalidToken):
            services.tokens.refresh_access(session.access_token)

    def test_expired_refresh_token(self, app, services, customer):
        stale = make_authority(app, clock=lambda: utcnow() - timedelta(days=8))
        session = stale.issue_session(customer.id, customer.role)
        with pytest.raises(InvalidToken):
            services.tokens.refresh_access(session.refresh_token)

    def test_never_stored(self, app, services, customer):
        # Valid signature, but no row: e.g. minted by another deployment
        detached = make_authority(app)
        token, _ = detached._mint_refresh(customer.id)
        with pytest.raises(Forbidden):
            services.tokens.refresh_access(token)

    def test_user_deleted(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        db.session.execute(delete(User).where(User.id == customer.id))
        db.session.commit()

        with pytest.raises(NotFound):
            services.tokens.refresh_access(session.refresh_token)


class TestRevoke:

    def test_revoked_token_is_refused(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        assert services.tokens.revoke(session.refresh_token) == 1
        with pytest.raises(Forbidden):
            services.tokens.refresh_access(session.refresh_token)

    def test_idempotent(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        assert services.tokens.revoke(session.refresh_token) == 1
        assert services.tokens.revoke(session.refresh_token) == 0

    def test_other_sessions_survive(self, services, customer):
        phone = services.tokens.issue_session(customer.id, customer.role)
        laptop = services.tokens.issue_session(customer.id, customer.role)

        services.tokens.revoke(phone.refresh_token)

        with pytest.raises(Forbidden):
            services.tokens.refresh_access(phone.refresh_token)
        assert services.tokens.refresh_access(laptop.refresh_token)

    def test_access_token_outlives_logout(self, services, customer):
        session = services.tokens.issue_session(customer.id, customer.role)
        services.tokens.revoke(session.refresh_token)
        assert services.tokens.verify_access(session.access_token).user_id == customer.id

    def test_empty_token(self, services):
        with pytest.raises(InvalidInput):
            services.tokens.revoke("")


class TestPurgeExpired:

    def test_removes_only_expired_rows(self, app, services, customer):
        stale = make_authority(app, clock=lambda: utcnow() - timedelta(days=8))
        stale.issue_session(customer.id, customer.role)
        live = services.tokens.issue_session(customer.id, customer.role)

        assert services.tokens.purge_expired() == 1
        assert stored_token_count() == 1
        assert services.tokens.refresh_access(live.refresh_token)

    def test_explicit_cutoff(self, services, customer):
        services.tokens.issue_session(customer.id, customer.role)
        assert services.tokens.purge_expired(now=utcnow()) == 0
        assert services.tokens.purge_expired(now=utcnow() + timedelta(days=8)) == 1
