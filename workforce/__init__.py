"""Workforce — attendance day-status engine and approval workflow."""
