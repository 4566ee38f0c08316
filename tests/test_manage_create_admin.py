from pdv import manage_create_admin
from pdv.auth.session import verify_password


def test_create_admin_hashes_password_and_skips_duplicates(db_session):
    user = manage_create_admin.create_admin(db_session, "admin", "s3nha-forte", "Administrador")
    db_session.commit()

    assert user is not None
    assert user.is_admin is True
    assert verify_password("s3nha-forte", user.password)
    assert manage_create_admin.create_admin(db_session, "admin", "outra", "Outro") is None
