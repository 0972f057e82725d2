"""Story builder: turn free-text requirements into scored user stories."""

__version__ = "0.1.0"
