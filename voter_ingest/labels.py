"""
Column label tables for voter-roll sheets.

Every logical field maps to the header spellings seen in exported rolls,
English and Marathi/Hindi side by side. Matching logic lives in
``matching.py``; adding a spelling here is all a new export layout needs.
"""

from __future__ import annotations

SERIAL_LABELS = (
    "अनु क्र.",
    "अनु.क्र.",
    "अनु क्रमांक",
    "अनुक्रमांक",
    "Serial Number",
    "Serial No",
    "Sr No",
    "Sr Number",
    "Sl No",
    "S No",
    "क्रमांक",
)

HOUSE_LABELS = (
    "घर क्र.",
    "घर क्र",
    "घर नंबर",
    "घर क्रमांक",
    "मकान संख्या",
    "House Number",
    "House No",
    "House",
)

AGE_LABELS = (
    "वय",
    "उम्र",
    "Age",
)

VOTER_ID_LABELS = (
    "मतदान कार्ड क्र.",
    "मतदान कार्ड क्र",
    "मतदान कार्ड क्रमांक",
    "मतदार ओळखपत्र",
    "मतदार ओळखपत्र क्र.",
    "मतदार ओळख क्रमांक",
    "Voter ID",
    "Voter ID No",
    "Voter ID Number",
    "Voter Id Card",
    "Voter Id Card No",
    "Voter Card Number",
    "VoterCard No",
    "VoterID",
    "EPIC No",
    "EPIC Number",
    "EPIC",
    "Elector Photo Identity Card No",
    "ID Card No",
    "IDCard No",
    "ID Card Number",
)

MOBILE_LABELS = (
    "मोबाईल नं.",
    "मोबाईल",
    "मोबाइल",
    "Mobile Number",
    "Mobile No",
    "Mobile",
    "Phone",
    "Phone Number",
    "Contact",
    "Contact Number",
)

# Latin-script and Devanagari-script slots never share a label.
NAME_EN_LABELS = (
    "Name_En",
    "Name_Eng",
    "Name (English)",
    "Name in English",
    "English Name",
    "Voter Name (English)",
    "इंग्रजी नाव",
)

NAME_MR_LABELS = (
    "Name_Mr",
    "Name_Mar",
    "Name (Marathi)",
    "Name in Marathi",
    "Marathi Name",
    "Voter Name (Marathi)",
    "मराठी नाव",
)

GENDER_EN_LABELS = (
    "Gender_En",
    "Gender_Eng",
    "Gender (English)",
    "English Gender",
    "Sex_En",
    "Sex (English)",
)

GENDER_MR_LABELS = (
    "Gender_Mr",
    "Gender_Mar",
    "Gender (Marathi)",
    "Marathi Gender",
    "मराठी लिंग",
    "लिंग (मराठी)",
)

# Single-column layouts from older exports; the cell's script decides the slot.
NAME_GENERIC_LABELS = (
    "Name",
    "Full Name",
    "Voter Name",
    "नाव",
    "नाम",
    "पूर्ण नाव",
    "मतदाराचे नाव",
)

GENDER_GENERIC_LABELS = (
    "Gender",
    "Sex",
    "लिंग",
)

# Relatives' names sit next to the voter's name in most rolls and must never
# be read as the voter's own name.
RELATIVE_NAME_LABELS = (
    "Father Name",
    "Father's Name",
    "Husband Name",
    "Husband's Name",
    "Relative Name",
    "Relation Name",
    "Guardian Name",
    "वडिलांचे नाव",
    "पतीचे नाव",
    "नातेवाईकाचे नाव",
    "पिता का नाम",
    "पति का नाम",
)

SCALAR_FIELD_LABELS = {
    "serialNumber": SERIAL_LABELS,
    "houseNumber": HOUSE_LABELS,
    "age": AGE_LABELS,
    "voterIdCard": VOTER_ID_LABELS,
    "mobileNumber": MOBILE_LABELS,
}

BILINGUAL_FIELD_LABELS = {
    "name": (NAME_EN_LABELS, NAME_MR_LABELS, NAME_GENERIC_LABELS),
    "gender": (GENDER_EN_LABELS, GENDER_MR_LABELS, GENDER_GENERIC_LABELS),
}

# Substring tokens used to score candidate header rows, one group per field.
HEADER_TOKEN_GROUPS = {
    "name": ("name", "नाव", "नाम"),
    "serial": ("serial", "sr no", "sl no", "s no", "अनु क्र", "अनुक्रमांक"),
    "house": ("house", "घर", "मकान"),
    "gender": ("gender", "sex", "लिंग"),
    "age": ("age", "वय", "उम्र"),
    "voter_id": ("voter id", "voterid", "voter card", "epic", "id card", "मतदान कार्ड", "ओळखपत्र"),
    "mobile": ("mobile", "phone", "contact", "मोबाईल", "मोबाइल"),
}
