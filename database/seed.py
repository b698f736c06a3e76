"""Demo reference data: one user per role, two projects and two suppliers with catalog items."""

from __future__ import annotations

import logging

from app.infrastructure.repositories.procurement import ReferenceRepository


logger = logging.getLogger("database.seed")

DEMO_USERS = (
    {"id": "user-requester", "email": "site.manager@civcon.example.com", "first_name": "Sam", "last_name": "Reed", "role": "requester"},
    {"id": "user-finance", "email": "finance@civcon.example.com", "first_name": "Alex", "last_name": "Moore", "role": "finance"},
    {"id": "user-admin", "email": "admin@civcon.example.com", "first_name": "Jo", "last_name": "Hart", "role": "admin"},
)

DEMO_PROJECTS = (
    {"name": "Riverside Apartments", "contract_number": "CV-1001", "start_date": "2026-01-12", "status": "active"},
    {"name": "Northgate School Extension", "contract_number": "CV-1002", "start_date": "2026-03-02", "status": "active"},
)

DEMO_SUPPLIERS = (
    (
        {
            "name": "Builders Merchant Ltd",
            "address": "12 Yard Lane, Leeds LS1 4AB",
            "email": "orders@buildersmerchant.example.com",
            "phone": "0113 496 0000",
            "contact_person": "Pat Lowe",
        },
        (
            {"description": "Portland cement 25kg", "unit": "bag", "unit_price": "6.80", "vat_type": "VAT 20%"},
            {"description": "Concrete block 440x215x100", "unit": "each", "unit_price": "1.95", "vat_type": "VAT 20%"},
        ),
    ),
    (
        {
            "name": "Groundworks Subcontracting",
            "address": "4 Quarry Road, Wakefield WF1 2CD",
            "email": "accounts@groundworks.example.com",
            "phone": None,
            "contact_person": "Chris Dale",
        },
        (
            {"description": "Excavation labour", "unit": "day", "unit_price": "280.00", "vat_type": "20% RC CIS (0%)"},
        ),
    ),
)


def seed_demo_data(db, references: ReferenceRepository | None = None) -> dict:
    """Insert the demo rows when the users table is empty; returns what was created."""
    references = references or ReferenceRepository()
    created = {"users": 0, "projects": 0, "suppliers": 0, "supplier_items": 0}
    if references.list_users(db):
        logger.info("seed_skipped", extra={"reason": "users_present"})
        return created

    for user in DEMO_USERS:
        references.create_user(db, dict(user))
        created["users"] += 1
    for project in DEMO_PROJECTS:
        references.create_project(db, dict(project))
        created["projects"] += 1
    for supplier, items in DEMO_SUPPLIERS:
        supplier_id = references.create_supplier(db, dict(supplier))
        created["suppliers"] += 1
        for item in items:
            references.create_supplier_item(db, supplier_id, dict(item))
            created["supplier_items"] += 1

    logger.info("seed_completed", extra=created)
    return created
