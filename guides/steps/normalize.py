"""Example step: trims and lower-cases every string in a record."""


def apply(data):
    return {key: value.strip().lower() if isinstance(value, str) else value for key, value in data.items()}
