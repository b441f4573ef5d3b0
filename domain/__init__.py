"""Pure domain model: leads, sales, contracts, notes, identity."""
