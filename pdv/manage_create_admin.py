"""Create an admin user for the PDV system.

Run: `python -m pdv.manage_create_admin --username admin --password changeme`
"""

import argparse
from contextlib import contextmanager

from pdv.auth.session import get_password_hash
from pdv.config import Base, SessionLocal, engine
from pdv.models.models import User


@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_admin(db, username: str, password: str, name: str) -> User | None:
    existing_user = db.query(User).filter(User.username == username).first()
    if existing_user:
        return None
    user = User(
        username=username,
        name=name,
        password=get_password_hash(password),
        is_admin=True,
    )
    db.add(user)
    db.flush()
    return user


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create an admin user")
    parser.add_argument("--username", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Administrator")
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    with session_scope() as db:
        user = create_admin(db, args.username, args.password, args.name)
        if user is None:
            print("User already exists with that username.")
            return
        print(f"Created admin user with id {user.id}")


if __name__ == "__main__":
    main()
