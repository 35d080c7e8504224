#!/usr/bin/env python3
"""
Generates sample-data/voter_roll_sample.xlsx, a bilingual voter roll laid out
the way ward offices export them.

Run from the repo root:
    python sample-data/generate_voter_roll.py

Problems baked in:
  Sheet "Ward 12"
    - Two title rows and a blank row above the real header (header is row 4)
    - Header labels mix English, Marathi and punctuation ("अनु. क्र.", "Name_En")
    - A "Father Name" column next to the voter's own name
    - Row with only a Marathi name (English slot must stay blank)
    - Row with only an English name (Marathi slot must stay blank)
    - Row with no name at all (rejected)
    - Ages as "45", "45 yrs", "N/A" and a float 38.0
    - A fully blank row in the middle of the data
  Sheet "Notes"
    - Ignored: only the first sheet is read
"""

from pathlib import Path
import openpyxl

OUTPUT = Path(__file__).parent / "voter_roll_sample.xlsx"

wb = openpyxl.Workbook()

# ── Sheet 1: Ward 12 ─────────────────────────────────────────────────────────
ws = wb.active
ws.title = "Ward 12"

ws.append(["मतदार यादी - प्रभाग क्र. 12"])          # row 1: title
ws.append(["Generated: 2024-01-05", None, "Page 1"])  # row 2: report metadata
ws.append([])                                          # row 3: blank

headers = [
    "अनु. क्र.",
    "घर क्र.",
    "Name_En",
    "Name_Mr",
    "Father Name",
    "Gender_En",
    "Gender_Mr",
    "वय",
    "मतदान कार्ड क्र.",
    "Mobile No",
]
ws.append(headers)                                     # row 4: header

data = [
    # sr  house   name_en          name_mr          father            g_en      g_mr     age       epic          mobile
    [1,   "12/A", "Anil Kumar",    "अनिल कुमार",    "Ramesh Kumar",   "Male",   "पुरुष", 45,       "MHA1234567", "9876543210"],
    [2,   "12/A", "Sunita Patil",  "सुनीता पाटील",  "Vijay Patil",    "Female", "स्त्री", "45 yrs", "MHA1234568", None],
    [3,   "14",   None,            "गणेश जाधव",     "सखाराम जाधव",    None,     "पुरुष", 38.0,     "MHA1234569", None],
    [None, None,  None,            None,            None,             None,     None,    None,     None,         None],
    [4,   "15",   "Priya Shinde",  None,            "Dilip Shinde",   "Female", None,    "N/A",    "MHA1234570", "9822001100"],
    [5,   "16",   None,            None,            "Orphan Row",     "Male",   "पुरुष", 60,       "MHA1234571", None],
    [6,   "17B",  "Rahul More",    "राहुल मोरे",     "Sanjay More",    "Male",   "पुरुष", 29,       "MHA1234572", "9000000001"],
]

for row in data:
    ws.append(row)

ws.column_dimensions["C"].width = 18
ws.column_dimensions["D"].width = 18
ws.column_dimensions["E"].width = 18

# ── Sheet 2: Notes ───────────────────────────────────────────────────────────
notes = wb.create_sheet("Notes")
notes.append(["Name", "Comment"])
notes.append(["Should never be imported", "second sheet"])

wb.save(OUTPUT)
print(f"Wrote {OUTPUT}")
