"""
Layout-driven PDF outline extraction: title and H1-H4 headings from page
images, detected layout regions and OCR text.
"""

__version__ = "1.0.0"
