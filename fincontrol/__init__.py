"""FinControl: personal finance ledger core."""
