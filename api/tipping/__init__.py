"""Family AFL tipping: round lifecycle, tip lockout, scoring and ladder."""
