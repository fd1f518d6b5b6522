"""Source clients and parsers: bulletin, registry, subsidy database."""
