"""Blueprints package."""
from flask import request


def request_data() -> dict:
    """JSON body, or form fields for classic form posts."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()
