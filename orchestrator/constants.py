"""Application constants and configuration values."""

from typing import Any, Final

DEFAULT_API_BASE_URL: Final[str] = "http://localhost:8000/api"
DEFAULT_TIMEOUT: Final[float] = 120.0
DEFAULT_USER_AGENT: Final[str] = "lern-orchestrator/0.1.0"

DEFAULT_STREAM_MAX_TOKENS: Final[int] = 8000

# Progress estimation
DEFAULT_PROGRESS_CEILING: Final[float] = 90.0
PROGRESS_MIN_STEP: Final[float] = 0.5
PROGRESS_MAX_STEP: Final[float] = 3.5
PROGRESS_TICK_SECONDS: Final[float] = 0.5
ELAPSED_TICK_SECONDS: Final[float] = 1.0

# Product-level provider names routed to real back-end providers
PROVIDER_ALIASES: Final[dict[str, str]] = {
    "lern-2.1": "gemini",
    "lern-1.9": "claude",
}

MOTION_TYPES: Final[dict[str, str]] = {
    "charter_s8": "Charter s.8 - Illegal Search & Seizure",
    "disclosure": "Disclosure Application",
    "stay_of_proceedings": "Stay of Proceedings",
}
DEFAULT_MOTION_TYPE: Final[str] = "charter_s8"

# Best-effort defaults used when generation is forced before intake is complete
DEFAULT_CASE_DETAILS: Final[dict[str, str]] = {
    "client_name": "Client",
    "court_location": "Superior Court of Justice",
    "court_file_no": "CR-2025-00001",
    "charges": "As described",
    "date_of_incident": "As described",
    "arresting_officer": "Unknown",
}

JURISDICTIONS: Final[dict[str, dict[str, Any]]] = {
    "canada": {
        "label": "Canada",
        "law": "Canadian",
        "regions": {
            "ontario": "Ontario",
            "british_columbia": "British Columbia",
            "alberta": "Alberta",
            "quebec": "Quebec",
            "manitoba": "Manitoba",
            "saskatchewan": "Saskatchewan",
            "nova_scotia": "Nova Scotia",
            "new_brunswick": "New Brunswick",
            "newfoundland": "Newfoundland & Labrador",
            "pei": "Prince Edward Island",
            "nwt": "Northwest Territories",
            "yukon": "Yukon",
            "nunavut": "Nunavut",
        },
    },
    "us": {
        "label": "United States",
        "law": "US",
        "regions": {
            "california": "California",
            "new_york": "New York",
            "texas": "Texas",
            "florida": "Florida",
            "illinois": "Illinois",
            "pennsylvania": "Pennsylvania",
            "ohio": "Ohio",
            "georgia": "Georgia",
            "michigan": "Michigan",
            "north_carolina": "North Carolina",
            "new_jersey": "New Jersey",
            "virginia": "Virginia",
            "washington": "Washington",
            "massachusetts": "Massachusetts",
            "arizona": "Arizona",
            "colorado": "Colorado",
            "maryland": "Maryland",
            "minnesota": "Minnesota",
            "tennessee": "Tennessee",
            "indiana": "Indiana",
        },
    },
}

# File extension -> document type tag used by the document store
DOCUMENT_TYPE_MAP: Final[dict[str, str]] = {
    "pdf": "pdf",
    "doc": "doc",
    "docx": "docx",
    "txt": "txt",
    "md": "md",
    "csv": "csv",
    "xlsx": "excel",
    "xls": "excel",
    "json": "json",
}
