"""Domain model for credit sales and installment payments (pure, no I/O)."""
