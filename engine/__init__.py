"""Battery risk classification and emergency incident bookkeeping."""
