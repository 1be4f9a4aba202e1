"""Tax Prep - federal and state income tax computation and compliance checks."""

__version__ = "0.3.0"
