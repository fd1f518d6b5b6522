"""Read-only analyses over stored records: cross references, red flags, reports."""
