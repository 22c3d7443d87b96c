"""
datavault_kernel -- Core types, errors, logging and database plumbing.

Nothing in the kernel imports from datavault_config, datavault_ingestion or
datavault_services.
"""

__version__ = "0.1.0"
