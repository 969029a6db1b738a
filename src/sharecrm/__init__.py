"""SHARE CRM: enrollment, PAQ, attendance and reporting backend."""

__version__ = "0.1.0"
