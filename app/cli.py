from __future__ import annotations

import click
from flask import Flask
from sqlalchemy import select

from db import SessionLocal
from models import Profile, UserRole
from passwords import hash_password
from utils import ApiError, iso_utc_now, new_uuid, normalize_email


def upsert_admin(db, *, email: str, name: str, password: str, department: str = "") -> Profile:
    """Create (or promote) an active admin profile with a password."""

    email_lc = normalize_email(email)
    if not email_lc:
        raise ApiError("BAD_REQUEST", "Missing email")
    now = iso_utc_now()

    profile = db.execute(select(Profile).where(Profile.email == email_lc)).scalars().first()
    if profile is None:
        profile = Profile(id=new_uuid(), email=email_lc, status="active", created_at=now)
        db.add(profile)
    profile.name = name or profile.name or email_lc
    if department:
        profile.department = department
    profile.status = "active"
    profile.password_hash = hash_password(password)
    profile.updated_at = now

    has_role = db.execute(
        select(UserRole.id).where(UserRole.user_id == profile.id).where(UserRole.role == "admin")
    ).first()
    if not has_role:
        db.add(UserRole(user_id=profile.id, role="admin", created_at=now))
    return profile


def register_cli(app: Flask) -> None:
    @app.cli.command("create-admin")
    @click.option("--email", required=True)
    @click.option("--name", default="")
    @click.option("--department", default="")
    @click.password_option()
    def create_admin(email: str, name: str, department: str, password: str):
        db = SessionLocal()
        try:
            profile = upsert_admin(db, email=email, name=name, password=password, department=department)
            db.commit()
        except ApiError as e:
            db.rollback()
            raise click.ClickException(e.message)
        finally:
            db.close()
        click.echo(f"admin ready: {profile.email} ({profile.id})")

    @app.cli.command("overdue-reminders")
    def overdue_reminders():
        from app.tasks.reminders import run_overdue_reminders

        click.echo(run_overdue_reminders())
