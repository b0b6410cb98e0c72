"""
Seed the room catalogue with a few bookable rooms.

Usage:
    python scripts/create_rooms.py
"""

import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BASE_DIR))

from sqlmodel import Session, select

from roombook.db import engine, init_db
from roombook.models import Room

# Monday to Friday, 0 = Sunday
WORKDAYS = [1, 2, 3, 4, 5]

ROOMS = [
    {
        "room_number": "301",
        "name": "Meeting room 301",
        "description": "Meeting room for up to 10 people",
        "capacity": 10,
        "location": "3rd floor",
        "facilities": ["projector", "whiteboard", "video conferencing"],
        "operating_hours": {"start_time": "09:00", "end_time": "18:00", "weekdays": WORKDAYS},
    },
    {
        "room_number": "205",
        "name": "Huddle room 205",
        "description": "Small room for up to 6 people",
        "capacity": 6,
        "location": "2nd floor",
        "facilities": ["whiteboard"],
        "operating_hours": {"start_time": "08:00", "end_time": "20:00", "weekdays": WORKDAYS},
    },
    {
        "room_number": "101",
        "name": "Conference hall",
        "description": "Conference hall for up to 40 people",
        "capacity": 40,
        "location": "1st floor",
        "facilities": ["projector", "microphones", "stage"],
        "operating_hours": {"start_time": "09:00", "end_time": "21:00", "weekdays": [0, 1, 2, 3, 4, 5, 6]},
    },
]


def create_rooms():
    """Create the rooms that are not in the database yet."""
    init_db()
    with Session(engine) as session:
        existing = set(session.exec(select(Room.room_number)).all())
        created = 0
        for room_data in ROOMS:
            if room_data["room_number"] in existing:
                print(f"  [SKIP] {room_data['name']} already exists")
                continue
            session.add(Room(**room_data))
            created += 1
            print(f"  [OK] {room_data['name']}")
        session.commit()
        print(f"\n[OK] Created {created} rooms")


if __name__ == "__main__":
    print("=" * 60)
    print("Seeding rooms")
    print("=" * 60)
    create_rooms()
    print("=" * 60)
