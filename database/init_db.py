import os
import sys

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from app import create_app
from app.db import get_db, init_db
from database.seed import seed_demo_data


app = create_app()


if __name__ == "__main__":
    with app.app_context():
        init_db()
        if os.environ.get("SEED_DEMO", "0").strip().lower() in {"1", "true", "yes"}:
            created = seed_demo_data(get_db())
            print(f"Demo data: {created}")
    print("Database initialized.")
