"""
Test support for sitefactory tests: sample data classes and templates.
"""

from pathlib import Path

TEMPLATE_DIR = Path(__file__).parent / "templates"
