# flyer_pipeline/__init__.py

__version__ = "0.1.0"
