"""
API Routes for ResQ.

- medical.py: record save/read and QR redemption endpoints
- staff.py: staff access ledger endpoints
"""

from .medical import bp as medical_bp
from .staff import bp as staff_bp

__all__ = ["medical_bp", "staff_bp"]
