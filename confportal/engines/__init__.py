"""Domain engines: payments, receipts, storage and document verification."""
