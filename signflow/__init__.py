"""
Signflow: electronic signature service for PDF documents.
"""

__version__ = "0.1.0"
