"""Domain layer: records, options, results and similarity math."""
