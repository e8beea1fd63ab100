"""Request helpers shared by the JSON blueprints."""
from flask import request


def request_payload() -> dict:
    """Body as dict, from JSON or form data.

    Repeated form fields (checkbox groups) come back as lists.
    """
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return {key: values if len(values) > 1 else values[0] for key, values in request.form.lists()}
