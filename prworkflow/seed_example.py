from sqlalchemy import select

from prworkflow.db import SessionLocal, engine
from prworkflow.models import Base, Client, Product, User, UserRole
from prworkflow.security.passwords import hash_password
from prworkflow.services.permission_service import DEFAULT_ROLE_CAPABILITIES, upsert_role_capabilities

DEMO_USERS = [
    ('admin', 'Admin User', UserRole.ADMIN, 'adminpass'),
    ('supervisor', 'Sam Supervisor', UserRole.SUPERVISOR, 'supervisorpass'),
    ('warehouse', 'Wes Warehouse', UserRole.WAREHOUSE_MAN, 'warehousepass'),
]


def seed() -> None:
    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        for role in UserRole:
            upsert_role_capabilities(db, role=role, capabilities=DEFAULT_ROLE_CAPABILITIES[role.value])

        for username, full_name, role, password in DEMO_USERS:
            user = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
            if not user:
                db.add(
                    User(
                        username=username,
                        full_name=full_name,
                        password_hash=hash_password(password),
                        role=role,
                        active=True,
                    )
                )

        if not db.execute(select(Product.id).limit(1)).first():
            db.add_all(
                [
                    Product(name='Pallet Wrap', unit='roll'),
                    Product(name='Shipping Labels', unit='box'),
                    Product(name='Safety Gloves', unit='pair'),
                ]
            )

        if not db.execute(select(Client.id).limit(1)).first():
            db.add(Client(name='Acme Logistics'))

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
