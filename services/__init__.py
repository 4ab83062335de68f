"""Services: balance reconciliation engine plus sale and payment flows."""
