"""
Shared infrastructure for Accredit: base models, errors, logging and DRF glue.
"""
