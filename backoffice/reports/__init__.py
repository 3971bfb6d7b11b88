"""Reports over sales, consignment (B2B) transactions and expenses."""
