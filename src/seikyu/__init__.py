"""seikyu - monthly invoice automation from a work-log spreadsheet."""

__version__ = "0.1.0"
