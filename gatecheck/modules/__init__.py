# GateCheck - Modules Package
"""
Core business logic modules for the GateCheck check-in system: the ticket
store, the check-in decision procedure, the scanner session and the
dashboard, plus ticket administration, QR images and roster export.
"""
