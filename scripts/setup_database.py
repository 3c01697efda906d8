#!/usr/bin/env python3
"""
Healthy Dialogue Database Setup Script
======================================

Creates the database tables before starting the server. Schema evolution is
out of scope; this only creates what is missing.

Usage:
    python setup_database.py [--check-only] [--demo-data]
"""

import sys
import logging
import argparse
from datetime import date
from sqlalchemy import inspect, text

from healthydialogue.db.session import engine, SessionLocal
from healthydialogue.db.base import Base

# Import all models to ensure they are registered with Base.metadata
from healthydialogue import models  # noqa: F401
from healthydialogue.models import Doctor, Patient, TherapyProgram, PatientProgramEnrollment

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def test_connection():
    """Test database connection"""
    logger.info("🔌 Testing database connection...")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False


def check_tables_exist():
    """Check if all required tables exist"""
    try:
        inspector = inspect(engine)
        existing_tables = inspector.get_table_names()
        required_tables = [table.name for table in Base.metadata.tables.values()]
        missing_tables = [table for table in required_tables if table not in existing_tables]

        logger.info(f"📋 Found {len(existing_tables)} existing tables, {len(required_tables)} required")

        if missing_tables:
            logger.warning(f"⚠️ Missing tables: {missing_tables}")
            return False
        logger.info("✅ All required tables exist")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to check tables: {e}")
        return False


def create_tables():
    """Create all required tables"""
    try:
        logger.info("🏗️ Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info(f"✅ Tables ready: {', '.join(inspect(engine).get_table_names())}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to create tables: {e}")
        return False


def create_demo_data():
    """Create a demo doctor enrolled with one patient"""
    logger.info("👥 Creating demo data...")
    try:
        with SessionLocal() as db:
            doctor = db.query(Doctor).filter(Doctor.email == "doctor@healthydialogue.dev").first()
            if doctor:
                logger.info("ℹ️ Demo data already exists")
                return True

            doctor = Doctor(
                name="Dr. Demo Doctor",
                email="doctor@healthydialogue.dev",
                phone="+10000000001",
                textit_uuid="demo-doctor",
            )
            patient = Patient(name="Demo Patient", phone="+10000000002", textit_uuid="demo-patient")
            program = TherapyProgram(name="Diabetes Care", duration_days=90, icon="droplet", color="#3B82F6")
            db.add_all([doctor, patient, program])
            db.flush()

            db.add(PatientProgramEnrollment(
                patient_id=patient.id,
                doctor_id=doctor.id,
                therapy_program_id=program.id,
                start_date=date.today(),
            ))
            db.commit()
            logger.info("✅ Created demo doctor (login identifier: demo-doctor) and patient")
            return True
    except Exception as e:
        logger.error(f"❌ Error creating demo data: {e}")
        return False


def main():
    """Main setup function"""
    parser = argparse.ArgumentParser(description='Healthy Dialogue Database Setup')
    parser.add_argument('--check-only', action='store_true',
                        help='Only check if tables exist, do not create')
    parser.add_argument('--demo-data', action='store_true',
                        help='Seed a demo doctor, patient and enrollment')

    args = parser.parse_args()

    logger.info("🚀 Healthy Dialogue Database Setup")
    logger.info("=" * 40)

    if not test_connection():
        logger.error("❌ Cannot proceed without database connection")
        sys.exit(1)

    tables_exist = check_tables_exist()

    if args.check_only:
        sys.exit(0 if tables_exist else 1)

    if not tables_exist and not create_tables():
        logger.error("❌ Failed to create tables")
        sys.exit(1)

    if args.demo_data and not create_demo_data():
        logger.warning("⚠️ Failed to create demo data (tables created successfully)")

    if check_tables_exist():
        logger.info("🎉 Database setup completed successfully!")
        logger.info("You can now start the server with:")
        logger.info("  python -m uvicorn healthydialogue.main:app --host 0.0.0.0 --port 8000")
    else:
        logger.error("❌ Setup verification failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
