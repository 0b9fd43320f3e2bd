"""
Plugin catalog and discovery engine.
"""

__version__ = "0.1.0"
