"""Account and ledger service for the Zilcycler recycling rewards platform."""
