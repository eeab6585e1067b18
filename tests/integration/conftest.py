from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from compliance.db import models, schemas
from compliance.db.repositories import organizations as repo_orgs
from compliance.services import billing_service, deadline_service, organization_service
from tests.helpers import NOW


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def user_factory(db_session: Session):
    def _create(email: str, is_superadmin: bool = False, display_name: str = None, phone: str = None):
        user = models.User(
            email=email,
            display_name=display_name or email.split("@")[0],
            is_superadmin=is_superadmin,
            phone=phone,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create


@pytest.fixture
def organization_factory(db_session: Session):
    def _create(owner, name: str = "Acme Dental", plan: str = None, industry: str = "healthcare"):
        org = organization_service.create_organization(
            db_session, owner, schemas.OrganizationCreate(name=name, industry=industry)
        )
        if plan is not None:
            billing_service.create_subscription(db_session, org.id, plan, trial=False, now=NOW)
        return org
    return _create


@pytest.fixture
def membership_factory(db_session: Session):
    def _create(org, user, role: str = "member"):
        membership = repo_orgs.add_membership(
            db_session, organization_id=org.id, user_id=user.id, role=role, invited_by=org.owner_user_id
        )
        db_session.commit()
        return membership
    return _create


@pytest.fixture
def owner(user_factory):
    return user_factory("owner@acme.test", display_name="Olive Owner")


@pytest.fixture
def org(owner, organization_factory):
    return organization_factory(owner)


@pytest.fixture
def team(org, user_factory, membership_factory):
    """One user per non-owner role in ``org``."""
    members = {}
    for role in ("admin", "manager", "member", "viewer"):
        user = user_factory(f"{role}@acme.test")
        membership_factory(org, user, role)
        members[role] = user
    return members


@pytest.fixture
def outsider(user_factory):
    return user_factory("outsider@elsewhere.test")


@pytest.fixture
def deadline_factory(db_session: Session, org, owner):
    def _create(title: str = "License renewal", due_in_days: float = 20, organization=None, user=None, **fields):
        target_org = organization or org
        payload = schemas.DeadlineCreate(
            title=title,
            due_date=NOW + timedelta(days=due_in_days),
            category=fields.pop("category", "licenses"),
            **fields,
        )
        return deadline_service.create_deadline(
            db_session, target_org.id, (user or owner).id, payload, now=NOW
        )
    return _create
