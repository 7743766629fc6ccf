#!/usr/bin/env python3
"""
Create the database tables and the platform super admin.
Run with: python init_admin.py

Credentials come from SUPER_ADMIN_USERNAME / SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD.
"""
import os
import sys

from clinic_api import create_app
from clinic_api.extensions import db
from clinic_api.models import User


def create_super_admin():
    """Create tables and the super admin account if missing"""
    username = os.getenv('SUPER_ADMIN_USERNAME', 'superadmin')
    email = os.getenv('SUPER_ADMIN_EMAIL', 'superadmin@clinic.com')
    password = os.getenv('SUPER_ADMIN_PASSWORD')

    app = create_app()
    with app.app_context():
        db.create_all()

        existing = User.query.filter_by(username=username).first()
        if existing:
            print(f"  - Super admin '{username}' already exists (skipping)")
            return 0

        if not password or len(password) < 8:
            print("SUPER_ADMIN_PASSWORD must be set (min 8 characters)")
            return 1

        admin = User(
            username=username,
            email=email,
            first_name='Super',
            last_name='Admin',
            role='admin',
            is_active=True,
            is_super_admin=True,
            clinic_id=None,
        )
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()

        print("=" * 60)
        print(f"Created super admin '{username}' <{email}>")
        print("=" * 60)
        return 0


if __name__ == '__main__':
    sys.exit(create_super_admin())
