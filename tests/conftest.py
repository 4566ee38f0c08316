import sys
from datetime import date
from decimal import Decimal
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pdv.api.dependencies import get_backup_store, get_db  # noqa: E402
from pdv.auth.session import create_session_token, get_password_hash  # noqa: E402
from pdv.config import Base, enable_sqlite_foreign_keys, settings  # noqa: E402
from pdv.core.rate_limit import limiter  # noqa: E402
from pdv.main import app  # noqa: E402
# Import the full models module so every snapshot table registers with Base metadata.
from pdv.models import models as _all_models  # noqa: E402,F401
from pdv.models.models import Account, AccountPayment, Client, Movement, Product, User  # noqa: E402
from pdv.services.backup_store import BackupStore  # noqa: E402

# Hashed once for the whole run; every fixture user shares it.
TEST_PASSWORD = "changeme123"
_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture
def db_engine(tmp_path):
    """A fresh SQLite database per test, with foreign keys enforced like the app engine."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def backup_store(tmp_path) -> BackupStore:
    return BackupStore(tmp_path / "backups")


@pytest.fixture
def create_user(db_session: Session) -> Callable[..., User]:
    def _create(username: str = "admin", is_admin: bool = True, name: str = "Test User") -> User:
        user = User(username=username, password=_PASSWORD_HASH, name=name, is_admin=is_admin)
        db_session.add(user)
        db_session.commit()
        return user

    return _create


@pytest.fixture
def client(db_session: Session, backup_store: BackupStore) -> Generator[TestClient, None, None]:
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_backup_store] = lambda: backup_store
    limiter.reset()
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        test_client.close()
        app.dependency_overrides.clear()


@pytest.fixture
def login_as(client: TestClient) -> Callable[[User], None]:
    def _login(user: User) -> None:
        client.cookies.set(settings.session_cookie_name, create_session_token(user))

    return _login


@pytest.fixture
def seed_data(db_session: Session, create_user) -> Callable[[], dict]:
    """Populate every snapshot table with a few related rows."""

    def _seed() -> dict:
        admin = create_user("admin", is_admin=True, name="Admin")
        clerk = create_user("caixa", is_admin=False, name="Operador de Caixa")
        coffee = Product(name="Cafe 500g", description="Torrado e moido", price=Decimal("18.90"), stock=40, user_id=admin.id)
        sugar = Product(name="Acucar 1kg", price=Decimal("5.49"), stock=12, user_id=admin.id)
        db_session.add_all([coffee, sugar])
        db_session.flush()
        client_row = Client(company_name="Padaria Central", cnpj="12.345.678/0001-90", city="Recife", state="PE", user_id=admin.id)
        account = Account(
            type="receber",
            description="Venda a prazo",
            amount=Decimal("250.00"),
            due_date=date(2025, 3, 10),
            status="parcialmente_pago",
            user_id=admin.id,
        )
        db_session.add_all([client_row, account])
        db_session.flush()
        db_session.add_all(
            [
                AccountPayment(account_id=account.id, payment_amount=Decimal("100.00"), payment_date=date(2025, 3, 1)),
                Movement(product_id=coffee.id, user_id=clerk.id, type="saida", quantity=2, reason="Venda"),
                Movement(product_id=sugar.id, user_id=admin.id, type="entrada", quantity=10, reason="Compra"),
            ]
        )
        db_session.commit()
        return {"admin": admin, "clerk": clerk, "products": [coffee, sugar], "account": account}

    return _seed
