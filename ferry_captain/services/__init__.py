"""Trip progression services: execution, reconciliation and check-in."""
