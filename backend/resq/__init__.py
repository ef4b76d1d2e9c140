"""ResQ: auditable emergency access to encrypted medical records."""
