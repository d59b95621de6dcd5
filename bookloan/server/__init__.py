"""Loan server: ingress, return/renew worker and operator console."""
