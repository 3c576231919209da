import random
import string
import time

_BASE36 = string.digits + string.ascii_lowercase

def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))

def generate_id() -> str:
    """Time-ordered id with a random suffix, unique per answer attempt"""
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(_BASE36, k=11))
    return _to_base36(millis) + suffix

def generate_question_id(year: int, subject: int, number: int) -> str:
    """Question id in the form YYYY-SS-NNN"""
    return f"{year}-{subject:02d}-{number:03d}"
