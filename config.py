"""
Configuration for the CEBM School Scorecard

Contains sheet names, pillar definitions, column aliases and status bands.
To accept a new column spelling, simply add it to the relevant alias list
below (earlier entries win).
"""

# =============================================================================
# WORKBOOK SHEETS
# =============================================================================
# The register drives school membership; one KPI input sheet per pillar

REGISTER_SHEET = "School Register"
REGISTER_SHEET_ALIASES = ["School Register", "Register"]

PILLARS = {
    "AE": "Academic Excellence",
    "SD": "Student Development",
    "TL": "Teaching & Learning",
    "CS": "Catholic School Identity",
}

PILLAR_KEYS = list(PILLARS.keys())

PILLAR_SHEETS = {key: f"{key} Input" for key in PILLAR_KEYS}

# =============================================================================
# COLUMN ALIASES
# =============================================================================
# Checked in order, first non-empty value wins

KPI_ID_ALIASES = ["School ID", "SchoolID", "school_id"]
REGISTER_ID_ALIASES = ["School ID", "SchoolID", "school_id", "ID", "id"]
NAME_ALIASES = ["School Name", "SchoolName", "school_name", "Name", "name"]
DISTRICT_ALIASES = ["District", "district", "Region", "region"]
TYPE_ALIASES = ["Type", "type", "Category", "category"]

# =============================================================================
# STATUS BANDS
# =============================================================================
# Inclusive lower bounds, checked from the top down

STATUS_BANDS = [
    (80, "Excellent"),
    (60, "Good"),
    (40, "Developing"),
]
FALLBACK_STATUS = "Needs Support"

STATUS_LABELS = [label for _, label in STATUS_BANDS] + [FALLBACK_STATUS]

# =============================================================================
# REPORTING
# =============================================================================

TOP_N = 10  # Size of the top / bottom school lists
