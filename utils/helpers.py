from datetime import datetime, timezone # For parsing ISO timestamps from request payloads.
from werkzeug.datastructures import MultiDict # WTForms reads form data from a MultiDict.

from errors import ValidationError

def formdata_from_json(payload):
    """
    Converts a JSON payload into form data that WTForms fields can process.

    JSON nulls are dropped (the field is treated as absent), numbers are passed as
    strings (as they would arrive from an HTML form) and booleans are kept as-is,
    since BooleanField treats False as unchecked.

    Args:
        payload (dict or None): The parsed JSON body.

    Returns:
        werkzeug.datastructures.MultiDict: Data suitable for `Form(formdata=...)`.
    """
    data = MultiDict()
    for key, value in (payload or {}).items():
        if value is None:
            continue
        if isinstance(value, bool) or isinstance(value, str):
            data.add(key, value)
        else:
            data.add(key, str(value))
    return data

def first_form_error(form):
    """
    Returns the first validation message of a WTForms form, in field declaration order.
    Used to build the `{"error": ...}` body of a 400 response.
    """
    for field in form:
        if field.errors:
            return field.errors[0]
    return "Invalid input."

def parse_datetime(value, field_name='date'):
    """
    Parses an ISO-8601 date or datetime string into a naive UTC datetime.

    Args:
        value (str or None): e.g. "2024-05-01" or "2024-05-01T10:30:00".
        field_name (str): Name used in the error message.

    Returns:
        datetime or None: None if `value` is empty.

    Raises:
        ValidationError: If the string is not a valid ISO date/datetime.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid {field_name}. Use YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS.")
    if parsed.tzinfo is not None:
        # Stored datetimes are naive UTC.
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
