import os

from facilita.core.security import get_password_hash
from facilita.db import models
from facilita.db.session import SessionLocal, engine
from facilita.ledger.schemas import Role


def main() -> None:
    email = os.getenv("MASTER_BOOTSTRAP_EMAIL")
    password = os.getenv("MASTER_BOOTSTRAP_PASSWORD")
    name = os.getenv("MASTER_BOOTSTRAP_NAME", "Administrador Master")
    if not email or not password:
        raise SystemExit("MASTER_BOOTSTRAP_EMAIL e MASTER_BOOTSTRAP_PASSWORD devem ser definidos.")
    email = email.strip().lower()

    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        master = (
            db.query(models.User)
            .filter(models.User.tenant_id.is_(None), models.User.email == email)
            .first()
        )
        if not master:
            master = models.User(tenant_id=None, email=email, name=name, role=Role.MASTER.value)
            db.add(master)
        master.role = Role.MASTER.value
        master.password_hash = get_password_hash(password)
        db.commit()
        print(f"Super Admin ativo: {master.email}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
