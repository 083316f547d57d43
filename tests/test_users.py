import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from errors import ValidationError
from services import UserService


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def test_password_is_stored_hashed() -> None:
    session = make_session()

    user = UserService(session).create("Ann", "ann@example.com", "secret-pass")

    assert user.password_hash
    assert user.password_hash != "secret-pass"
    assert user.password_hash.startswith("$2")


def test_authenticate_checks_password() -> None:
    session = make_session()
    users = UserService(session)
    ann = users.create("Ann", "Ann@Example.com", "secret-pass")

    assert users.authenticate(" ANN@example.com", "secret-pass").id == ann.id
    assert users.authenticate("ann@example.com", "wrong-pass") is None
    assert users.authenticate("bob@example.com", "secret-pass") is None


def test_deleted_user_cannot_authenticate() -> None:
    session = make_session()
    users = UserService(session)
    ann = users.create("Ann", "ann@example.com", "secret-pass")
    ann.is_deleted = True
    session.commit()

    assert users.authenticate("ann@example.com", "secret-pass") is None


@pytest.mark.parametrize("password", ["", "short", "x" * 129, None])
def test_password_length_is_enforced(password) -> None:
    session = make_session()

    with pytest.raises(ValidationError, match="Password"):
        UserService(session).create("Ann", "ann@example.com", password)
