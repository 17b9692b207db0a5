"""reliefwatch: SOS escalation and geographic clustering engine."""
