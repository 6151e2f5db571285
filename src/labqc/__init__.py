"""labqc - Westgard multi-rule QC monitoring for clinical laboratories."""

__version__ = "0.1.0"
