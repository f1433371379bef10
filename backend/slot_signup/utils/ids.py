import uuid

# Row ids stay below 10**15: spreadsheet numbers keep 15 significant digits.
_ROW_ID_BITS = 48


def generate_row_id() -> int:
    """Generate a positive integer id for a new table row."""
    return (uuid.uuid4().int >> (128 - _ROW_ID_BITS)) or 1


def generate_batch_id() -> str:
    """Generate an id shared by every signup row one booking request writes."""
    return uuid.uuid4().hex
