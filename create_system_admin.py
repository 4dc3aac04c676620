#!/usr/bin/env python3
"""
Create (or reset the password of) the system administrator account
"""
import sys

from johapon import create_app
from johapon.models import db, AuthIdentity, User, UserAuthLink
from johapon.models.user import ROLE_SYSTEM_ADMIN, APPROVED
from johapon.utils.auth_utils import hash_password
from johapon.utils.validators import validate_email, validate_password_strength


def create_system_admin(email, password, name='System Admin'):
    """Create the email/password identity and its SYSTEM_ADMIN profile"""
    email_result = validate_email(email)
    if not email_result.is_valid:
        print(f"❌ {email_result.error_message}")
        return False

    password_result = validate_password_strength(password)
    if not password_result.is_valid:
        print(f"❌ {password_result.error_message}")
        return False

    app = create_app()
    with app.app_context():
        email = email_result.sanitized_value
        identity = AuthIdentity.query.filter_by(provider='email', email=email).first()
        if identity:
            identity.password_hash = hash_password(password)
            db.session.commit()
            print(f"✅ Password reset for {email}")
            return True

        identity = AuthIdentity(provider='email', email=email, display_name=name,
                                password_hash=hash_password(password))
        admin = User(name=name, email=email, role=ROLE_SYSTEM_ADMIN, user_status=APPROVED)
        db.session.add_all([identity, admin])
        db.session.flush()
        db.session.add(UserAuthLink(auth_identity_id=identity.id, user_id=admin.id))
        db.session.commit()
        print(f"✅ System admin {email} created (user id: {admin.id})")
        return True


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python create_system_admin.py <email> <password>")
        sys.exit(1)

    ok = create_system_admin(sys.argv[1], sys.argv[2])
    sys.exit(0 if ok else 1)
