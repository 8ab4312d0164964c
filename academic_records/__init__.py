"""Academic record aggregation and promotion decision engine."""
