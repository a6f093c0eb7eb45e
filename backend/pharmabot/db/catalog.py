"""Reference catalog inserted by the seed step: (name, stock, expiry date)."""
from datetime import date

SEED_MEDICINES = [
    ("Acetaminophen 500mg", 1000, date(2025, 12, 31)),
    ("Ibuprofen 200mg", 800, date(2026, 6, 30)),
    ("Amoxicillin 250mg", 500, date(2025, 9, 15)),
    ("Lisinopril 10mg", 600, date(2026, 3, 31)),
    ("Metformin 500mg", 750, date(2025, 11, 30)),
    ("Levothyroxine 50mcg", 400, date(2026, 8, 31)),
    ("Amlodipine 5mg", 550, date(2026, 1, 31)),
    ("Omeprazole 20mg", 700, date(2025, 10, 31)),
    ("Sertraline 50mg", 450, date(2026, 4, 30)),
    ("Atorvastatin 20mg", 600, date(2026, 2, 28)),
    ("Metoprolol 25mg", 500, date(2025, 12, 15)),
    ("Gabapentin 300mg", 350, date(2026, 5, 31)),
    ("Escitalopram 10mg", 400, date(2026, 7, 31)),
    ("Losartan 50mg", 550, date(2026, 3, 15)),
    ("Albuterol Inhaler 90mcg", 200, date(2025, 11, 30)),
    ("Hydrocodone/APAP 5-325mg", 300, date(2025, 9, 30)),
    ("Metformin ER 750mg", 450, date(2026, 1, 15)),
    ("Pantoprazole 40mg", 500, date(2026, 4, 15)),
    ("Citalopram 20mg", 400, date(2025, 12, 31)),
    ("Fluoxetine 20mg", 350, date(2026, 6, 15)),
]


def seed_rows() -> list[dict]:
    return [
        {"name": name, "stock": stock, "expiry_date": expiry}
        for name, stock, expiry in SEED_MEDICINES
    ]
