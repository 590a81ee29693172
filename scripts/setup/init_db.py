# scripts/setup/init_db.py
"""
Initialize database — creates all tables and the global settings row.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py [--seed-demo]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text

from library_attendance.config import settings
from library_attendance.database import create_tables, engine, SessionLocal
from library_attendance.models.app_settings import GLOBAL_SETTINGS_ID, SettingsRow
from library_attendance.models.patron import Patron
from library_attendance.schemas.settings import default_app_settings
from library_attendance.services.patron_service import demo_patrons


def seed_settings(db):
    if db.get(SettingsRow, GLOBAL_SETTINGS_ID):
        return False
    defaults = default_app_settings()
    db.add(SettingsRow(
        id=GLOBAL_SETTINGS_ID,
        daily_capacity=defaults.daily_capacity,
        ai_insights_enabled=defaults.ai_insights_enabled,
        auto_checkout_enabled=defaults.auto_checkout_enabled,
        auto_checkout_hours=defaults.auto_checkout_hours,
        notif_enabled=defaults.notifications.enabled,
        notif_email=defaults.notifications.email,
        notif_threshold_mins=defaults.notifications.threshold_minutes,
        id_config=defaults.id_config.model_dump(),
    ))
    db.commit()
    return True


def seed_demo_patrons(db):
    added = 0
    for p in demo_patrons():
        if db.get(Patron, p.id):
            continue
        db.add(Patron(id=p.id, category=p.category, first_name=p.first_name, surname=p.surname,
                      email=p.email, phone=p.phone, level=p.level, program=p.program,
                      department=p.department, national_id=p.national_id, total_hours=p.total_hours))
        added += 1
    db.commit()
    return added


def main():
    parser = argparse.ArgumentParser(description="Create tables and seed the settings row")
    parser.add_argument("--seed-demo", action="store_true", help="Also insert the demo patrons")
    args = parser.parse_args()

    print("🗄️  Library Attendance DB Initialization")
    print("=" * 40)

    if engine is None:
        print("❌ DATABASE_URL is not set — nothing to initialize (the API will run offline).")
        sys.exit(1)
    print(f"📡 Database: {settings.DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  docker-compose up -d db")
        print("  # or: sudo systemctl start postgresql")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    print("✅ Tables created")

    db = SessionLocal()
    try:
        if seed_settings(db):
            print(f"✅ Inserted default settings row '{GLOBAL_SETTINGS_ID}'")
        if args.seed_demo:
            print(f"✅ Inserted {seed_demo_patrons(db)} demo patrons")
    finally:
        db.close()

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\n🎉 Database ready! You can now start the backend:")
    print("   uvicorn library_attendance.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
