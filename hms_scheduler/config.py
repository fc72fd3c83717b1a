"""Configuration for the HMS scheduler.

Defaults live here; every value can be overridden from the environment
(a `.env` file in the working directory is loaded first).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PACKAGE_DIR = Path(__file__).resolve().parent

# Catalog fixtures (hospitals.json, doctors.json)
DATA_DIR = Path(os.getenv("HMS_DATA_DIR", PACKAGE_DIR / "data"))

# JSON file backing the record store; unset keeps everything in memory
STORE_PATH = os.getenv("HMS_STORE_PATH") or None

LOG_LEVEL = os.getenv("HMS_LOG_LEVEL", "INFO")

HOST = os.getenv("HMS_HOST", "0.0.0.0")
PORT = int(os.getenv("HMS_PORT", "8000"))

# Daily slot grid: [start, end) in whole hours, fixed step in minutes
SLOT_START_HOUR = int(os.getenv("SLOT_START_HOUR", "9"))
SLOT_END_HOUR = int(os.getenv("SLOT_END_HOUR", "18"))
SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "30"))

# How far ahead a patient may book
BOOKING_WINDOW_MONTHS = int(os.getenv("BOOKING_WINDOW_MONTHS", "3"))

REGISTRATION_ID_PREFIX = os.getenv("REGISTRATION_ID_PREFIX", "REG")

DEFAULT_USERS = [
    {
        "id": 1,
        "name": "Admin User",
        "email": "admin@hms.com",
        "password": "admin123",
        "role": "admin",
        "phone": "+1234567890",
        "registrationDate": "2024-01-01",
    },
    {
        "id": 2,
        "name": "John Doe",
        "email": "john@example.com",
        "password": "patient123",
        "role": "patient",
        "phone": "+1234567891",
        "registrationDate": "2024-01-15",
    },
    {
        "id": 3,
        "name": "Dr. Smith",
        "email": "dr.smith@hms.com",
        "password": "doctor123",
        "role": "doctor",
        "phone": "+1234567892",
        "registrationDate": "2024-01-10",
        "specialty": "Cardiology",
        "experience": 15,
    },
]
