"""
seed.py
=======
Demo data loaded at startup when SEED_DEMO_DATA is on and the doctors
table is empty: doctors, their weekly schedules, filter bar values and
two weeks of bookable slots.

Also the maintenance jobs behind `python -m carebook seed-schedules` and
`python -m carebook generate-slots`.
"""

import datetime
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import Doctor, DoctorSchedule, Filter, FilterType, Gender
from .scheduling import generate_slots

logger = logging.getLogger(__name__)

SEED_DAYS = 14
GENERATE_DAYS_AHEAD = 30

# (name, specialty, gender, experience, rating, location, (lat, lon), badge, fee, specialization)
DEMO_DOCTORS = [
    ("Dr. Sarah Johnson", "Cardiologist", Gender.female, 12, 4.8, "Delhi, NCR", (28.6139, 77.2090),
     "Top Rated", 1500, ["Interventional Cardiology", "Heart Failure", "Preventive Cardiology"]),
    ("Dr. Rajesh Kumar", "Neurologist", Gender.male, 15, 4.9, "Gurugram, Haryana", (28.4089, 77.0266),
     "Recommended", 2000, ["Stroke Management", "Epilepsy", "Headache Management"]),
    ("Dr. Priya Sharma", "Pediatrician", Gender.female, 8, 4.7, "Noida, Uttar Pradesh", (28.5355, 77.3910),
     None, 800, ["Child Development", "Vaccination", "Newborn Care"]),
    ("Dr. Amit Patel", "Orthopedic", Gender.male, 18, 4.9, "Delhi, NCR", (28.6200, 77.2150),
     "Top Rated", 2500, ["Joint Replacement", "Sports Injuries", "Spine Care"]),
    ("Dr. Ananya Reddy", "Dermatologist", Gender.female, 10, 4.6, "Gurugram, Haryana", (28.4150, 77.0300),
     "Recommended", 1200, ["Acne Treatment", "Eczema", "Cosmetic Dermatology"]),
    ("Dr. Meera Nair", "Gynecologist", Gender.female, 11, 4.7, "Delhi, NCR", (28.6250, 77.2200),
     "Recommended", 1400, ["Pregnancy Care", "PCOS", "Menstrual Disorders"]),
    ("Dr. Arjun Mehta", "Psychiatrist", Gender.male, 13, 4.6, "Gurugram, Haryana", (28.4200, 77.0350),
     "Recommended", 1600, ["Anxiety", "Depression", "Sleep Disorders"]),
    ("Dr. Aditya Khanna", "General Physician", Gender.male, 11, 4.5, "Gurugram, Haryana", (28.4300, 77.0450),
     None, 900, ["Fever", "Diabetes", "Hypertension"]),
    ("Dr. Kavita Desai", "ENT Specialist", Gender.female, 9, 4.8, "Noida, Uttar Pradesh", (28.5450, 77.4000),
     "Top Rated", 1000, ["Sinusitis", "Hearing Loss", "Tonsillitis"]),
    ("Dr. Manish Tiwari", "Gastroenterologist", Gender.male, 12, 4.7, "Noida, Uttar Pradesh", (28.5500, 77.4050),
     "Recommended", 1900, ["Acidity", "IBS", "Liver Care"]),
]

WEEKDAY_SCHEDULE = {
    "periods": ["Morning", "Afternoon", "Evening"],
    "start_time": "09:00",
    "end_time": "17:00",
    "break_start_time": "13:00",
    "break_end_time": "14:00",
}
SATURDAY_SCHEDULE = {"periods": ["Morning", "Afternoon"], "start_time": "10:00", "end_time": "14:00"}

DEMO_FILTERS = {
    FilterType.specialist: [
        "Cardiologist", "Dermatologist", "Neurologist", "Pediatrician", "Orthopedic",
        "Gynecologist", "Psychiatrist", "General Physician", "ENT Specialist", "Gastroenterologist",
    ],
    FilterType.location: ["Noida", "Delhi", "Gurugram"],
    FilterType.experience: ["1-3 years", "3-5 years", "5-10 years", "10+ years", "15+ years"],
    FilterType.gender: ["Male", "Female", "Any"],
}


def _email_for(name: str) -> str:
    first, last = name.replace("Dr. ", "").lower().split(" ", 1)
    return f"{first}.{last.replace(' ', '')}@carebook.example"


SCHEDULE_FIELDS = ("is_available", "periods", "start_time", "end_time", "break_start_time", "break_end_time")


def default_week():
    """(day_of_week, fields) pairs: Mon-Fri full days with a lunch break, Saturday mornings, Sunday off."""
    week = [(0, {"is_available": False, "periods": []})]
    for day in range(1, 6):
        week.append((day, dict(is_available=True, **WEEKDAY_SCHEDULE)))
    week.append((6, dict(is_available=True, **SATURDAY_SCHEDULE)))
    return week


def weekly_schedule(doctor_id: int):
    """New DoctorSchedule rows for the default week."""
    return [DoctorSchedule(doctor_id=doctor_id, day_of_week=day, **fields) for day, fields in default_week()]


def seed_schedules(db: Session) -> dict:
    """
    Put every doctor on the default week.
    Existing rows for a weekday are overwritten, missing ones are created.
    """
    doctors = db.query(Doctor).order_by(Doctor.id).all()
    if not doctors:
        logger.warning("⚠️  No doctors found. Seed doctors first.")
        return {"doctors": 0, "created": 0, "updated": 0}

    created = updated = 0
    for doctor in doctors:
        existing = {s.day_of_week: s for s in doctor.schedules}
        for day, fields in default_week():
            row = existing.get(day)
            if row is None:
                db.add(DoctorSchedule(doctor_id=doctor.id, day_of_week=day, **fields))
                created += 1
                continue
            for field in SCHEDULE_FIELDS:
                setattr(row, field, fields.get(field))
            updated += 1
        logger.info("✅ Processed schedule for %s", doctor.name)
    db.commit()

    logger.info("📊 Schedules: %d created, %d updated for %d doctors", created, updated, len(doctors))
    return {"doctors": len(doctors), "created": created, "updated": updated}


def generate_upcoming_slots(db: Session, doctor_id: Optional[int] = None, days: int = GENERATE_DAYS_AHEAD) -> dict:
    """
    Create slots from today through ``days`` days ahead, for one doctor or all of them.
    A doctor whose generation fails is rolled back and counted in ``errors``.
    Raises LookupError for an unknown ``doctor_id``.
    """
    if doctor_id is not None:
        doctor = db.get(Doctor, doctor_id)
        if not doctor:
            raise LookupError(f"Doctor with ID {doctor_id} not found")
        doctors = [doctor]
    else:
        doctors = db.query(Doctor).order_by(Doctor.id).all()

    start = datetime.date.today()
    end = start + datetime.timedelta(days=days)
    logger.info("📅 Generating slots from %s to %s for %d doctors", start, end, len(doctors))

    total = errors = 0
    for doctor in doctors:
        try:
            total += generate_slots(db, doctor.id, start, end)["slotsGenerated"]
        except SQLAlchemyError as e:
            db.rollback()
            errors += 1
            logger.error("❌ Slot generation failed for %s: %s", doctor.name, e)

    return {
        "doctors": len(doctors),
        "errors": errors,
        "slotsGenerated": total,
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
    }


def seed_filters(db: Session):
    for filter_type, values in DEMO_FILTERS.items():
        if not db.query(Filter).filter(Filter.filter_type == filter_type).first():
            db.add(Filter(filter_type=filter_type, values=values))
    db.commit()


def seed_demo_data(db: Session, days: int = SEED_DAYS) -> int:
    """
    Load the demo data set if no doctors exist.
    Returns the number of doctors created (0 when the table already has rows).
    """
    doctor_count = db.query(Doctor).count()
    if doctor_count:
        logger.info("🩻 %d doctors already exist in the system.", doctor_count)
        return 0

    logger.info("🩺 No doctors found. Seeding demo doctors...")
    doctors = []
    for (name, specialty, gender, experience, rating, location, (lat, lon),
         badge, fee, specialization) in DEMO_DOCTORS:
        doctors.append(Doctor(
            name=name,
            email=_email_for(name),
            specialty=specialty,
            gender=gender,
            experience=experience,
            patient_stories=experience * 90,
            rating=rating,
            location=location,
            latitude=lat,
            longitude=lon,
            image="/doctors-listing/doctor.png",
            badge=badge,
            fee=fee,
            biography=f"{name} is a {specialty.lower()} with {experience} years of experience.",
            specialization=specialization,
            qualifications="MBBS, MD",
            total_consultations=experience * 250,
            office_address=f"CareBook Clinic, {location}",
            phone_number="+91 9876543210",
        ))
    db.add_all(doctors)
    db.flush()

    for doctor in doctors:
        db.add_all(weekly_schedule(doctor.id))
    db.commit()

    seed_filters(db)

    today = datetime.date.today()
    for doctor in doctors:
        generate_slots(db, doctor.id, today, today + datetime.timedelta(days=days - 1))

    logger.info("✅ Seeded %d doctors with %d days of slots.", len(doctors), days)
    return len(doctors)
