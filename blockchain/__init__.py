"""EVM access and voucher event indexing."""
