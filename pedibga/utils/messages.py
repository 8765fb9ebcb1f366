"""
User-facing messages.

Single source for every string the session can place in its error field,
plus the fixed notices the report view shows.
"""

# Validation (analyze with missing required values)
REQUIRED_FIELDS_MESSAGE = "Please enter at least pH, pCO2 and HCO3 to run the analysis."

# Extraction failures (mode-specific)
IMAGE_EXTRACTION_FAILED = "Image recognition failed. Please enter the values manually or try again."
TEXT_EXTRACTION_FAILED = "No valid blood gas values were recognised in the text. Please enter them manually."

# Report failures
REPORT_FAILED = "Report generation failed. Please check the network settings or try again."

DISCLAIMER = (
    "Disclaimer: this tool is for clinical decision support only and is not a "
    "final diagnosis. Interpret the results together with the patient's "
    "clinical condition."
)

ACCURACY_REMINDER = "Please make sure every value is correct."
