#!/usr/bin/env python3
"""Seed the database with the PC service catalog."""
import sys
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from smoothflow import create_app
from smoothflow.extensions import db
from smoothflow.models import Service, ServiceOption

CATALOG = [
    {
        "title": "Full PC Assembly",
        "description": "Assembly of all components, cable management and first boot",
        "base_price_cents": 15000,
        "category": "assembly",
        "popular": True,
        "options": [
            {"title": "Basic assembly", "price_cents": 0},
            {"title": "Advanced assembly with cable sleeving", "price_cents": 5000},
        ],
    },
    {
        "title": "PC Maintenance",
        "description": "Internal cleaning, fan check and hardware health report",
        "base_price_cents": 8000,
        "category": "maintenance",
        "options": [],
    },
    {
        "title": "Windows Tweaking",
        "description": "Service, startup and power-plan tuning for lower latency",
        "base_price_cents": 4000,
        "category": "tweaks",
        "popular": True,
        "options": [
            {"title": "Gaming profile", "price_cents": 1500},
            {"title": "Work profile", "price_cents": 1000},
        ],
    },
    {
        "title": "BIOS Tweaking",
        "description": "Memory profile, fan curves and boot settings",
        "base_price_cents": 5000,
        "category": "tweaks",
        "options": [],
    },
    {
        "title": "Controller Overclock",
        "description": "Polling-rate overclock for supported game controllers",
        "base_price_cents": 9000,
        "category": "overclocking",
        "options": [],
    },
    {
        "title": "Water Cooling Installation",
        "description": "AIO or custom loop installation and leak test",
        "base_price_cents": 20000,
        "category": "cooling",
        "options": [
            {"title": "AIO cooler", "price_cents": 0},
            {"title": "Custom loop", "price_cents": 15000},
        ],
    },
    {
        "title": "Fault Diagnosis",
        "description": "Find out why the machine crashes, freezes or will not boot",
        "base_price_cents": 3000,
        "category": "diagnosis",
        "options": [],
    },
    {
        "title": "Thermal Paste Replacement",
        "description": "CPU and GPU repaste with high-performance compound",
        "base_price_cents": 2500,
        "category": "maintenance",
        "options": [],
    },
]

def seed_services():
    """Add catalog services that are not in the database yet."""
    app = create_app()

    with app.app_context():
        added = 0
        for entry in CATALOG:
            if Service.query.filter_by(title=entry["title"]).first():
                print(f"⏭️  {entry['title']} already exists. Skipping...")
                continue

            service = Service(
                title=entry["title"],
                description=entry["description"],
                base_price_cents=entry["base_price_cents"],
                category=entry["category"],
                popular=entry.get("popular", False),
            )
            for option in entry["options"]:
                service.options.append(ServiceOption(title=option["title"], price_cents=option["price_cents"]))
            db.session.add(service)
            added += 1
            print(f"  ✓ Added: {entry['title']} ({entry['base_price_cents'] / 100:.2f} SAR)")

        db.session.commit()
        print(f"\n✅ {added} services seeded")
        print(f"📊 Total services in database: {Service.query.count()}")

if __name__ == "__main__":
    seed_services()
