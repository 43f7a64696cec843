"""
Caller identity.

Authentication happens upstream (the portal's auth proxy); by the time a
request reaches this service the employee's email is in X-Employee-Email.
"""
from typing import Optional

from fastapi import Header

from coaching_portal.core.errors import MissingIdentityError


def get_current_email(
    x_employee_email: Optional[str] = Header(default=None, alias="X-Employee-Email"),
) -> str:
    email = (x_employee_email or "").strip().lower()
    if not email or "@" not in email:
        raise MissingIdentityError()
    return email
