#!/usr/bin/env python3
"""
Script para crear el administrador inicial (y un vendedor de prueba)

Uso:
    ADMIN_EMAIL=admin@saluddirecta.com ADMIN_PASSWORD=... python -m scripts.create_admin
"""
import os
from datetime import datetime
from dotenv import load_dotenv

load_dotenv()

from app.config.database import Base, SessionLocal, engine
from app.shared.database.models import User
from app.core.auth.service import AuthService

def create_admin():
    """Crear admin activo si no existe"""

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    users = [
        {
            "name": os.getenv("ADMIN_NAME", "Administrador"),
            "email": os.getenv("ADMIN_EMAIL", "admin@saluddirecta.com"),
            "password": os.getenv("ADMIN_PASSWORD", "admin123"),
            "role": "admin"
        },
        {
            "name": "Vendedor Demo",
            "email": "vendedor@saluddirecta.com",
            "password": "vendedor123",
            "role": "vendedor"
        }
    ]

    try:
        created = 0
        for user_data in users:
            if db.query(User).filter(User.email == user_data["email"]).first():
                print(f"✅ Ya existe: {user_data['email']}")
                continue

            db.add(User(
                name=user_data["name"],
                email=user_data["email"],
                password_hash=AuthService.get_password_hash(user_data["password"]),
                role=user_data["role"],
                is_active=True,
                created_at=datetime.now(),
                activated_at=datetime.now()
            ))
            created += 1
            print(f"✅ Usuario creado: {user_data['email']} ({user_data['role']})")

        db.commit()
        print(f"\n🎉 {created} usuarios creados")

    except Exception as e:
        db.rollback()
        print(f"❌ Error creando usuarios: {e}")
        raise

    finally:
        db.close()

if __name__ == "__main__":
    create_admin()
